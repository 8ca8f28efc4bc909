"""
Cross-DEX cycle scanning: pool graph, cycle enumeration, swap simulation,
profit estimation and the periodic opportunity scanner.
"""
