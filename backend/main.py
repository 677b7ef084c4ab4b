from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from database import init_db
from business_case_api import router as business_case_router
from market_analysis_api import router as market_analysis_router

init_db()

app = FastAPI(title="Business Case Engine API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(business_case_router)
app.include_router(market_analysis_router)


@app.get("/")
def read_root():
    return {"message": "Business Case Engine API is running"}
