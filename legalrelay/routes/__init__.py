"""HTTP routers for the Legal AI backend."""
