"""Flask blueprints for the edge router."""
