"""Snake draft turn-order and pick-sequencing server."""
