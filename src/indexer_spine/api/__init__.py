"""HTTP surface: app factory, runtime container, routers and middleware."""
