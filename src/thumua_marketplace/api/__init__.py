"""HTTP layer: FastAPI dependencies, middleware and routers."""
