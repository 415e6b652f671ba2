"""HTTP surface: application factory, dependency providers and route modules."""
