"""Character-state validation conditions, results and their wire form."""