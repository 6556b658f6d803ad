import os
import logging
from fastapi import FastAPI
from hyperlocal.api.routes import orders, stores, inventory

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Hyperlocal Fulfillment Core",
    description="Order placement, inventory and store discovery for hyperlocal commerce",
    version="1.0.0"
)

# Include routers
app.include_router(orders.router, prefix="/api/v1/orders", tags=["orders"])
app.include_router(stores.router, prefix="/api/v1/stores", tags=["stores"])
app.include_router(inventory.router, prefix="/api/v1/inventory", tags=["inventory"])

@app.get("/")
async def root():
    return {"message": "Hyperlocal Fulfillment Core API"}

@app.get("/health")
async def health_check():
    return {"status": "healthy"}

if __name__ == "__main__":
    import uvicorn
    from hyperlocal.core.database import init_db
    init_db()
    uvicorn.run(app, host="0.0.0.0", port=8000)
