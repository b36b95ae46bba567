"""Saga and step models, typed action payloads and their wire form."""