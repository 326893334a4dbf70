from fastapi import FastAPI
import uvicorn
from fastapi.middleware.cors import CORSMiddleware
from db.database import create_db_and_tables
from core.logging_config import configure_logging
from routers.deductions import router as deductions_router
from routers.ledger import router as ledger_router
from contextlib import asynccontextmanager

@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    await create_db_and_tables()
    yield


app = FastAPI(
    title="Inventory Deduction API",
    description="Turns POS sale lines into stock deductions and cost postings",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# POS sale lines: deduct, simulate, mapping lookup
app.include_router(deductions_router, prefix="/deductions", tags=["deductions"])

# Inventory ledger (read-only)
app.include_router(ledger_router, prefix="/ledger", tags=["ledger"])

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
