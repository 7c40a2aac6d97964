"""
Back-office engines -- pure computation, zero I/O.

- commission: vendor commission and partner-pool split
- pricing: tier selection, minimum / ideal price, approval gate
- fulfillment: producer grouping, item fingerprints, order status roll-up
- reconciliation: receivable status, minimum payment, match differences
"""
