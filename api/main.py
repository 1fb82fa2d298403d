# api/main.py
from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .deps import init_services
from .routes import automation_routes, frame_routes, events_routes

app = FastAPI(title="Match Agent Control API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.on_event("startup")
async def startup():
    await init_services(app)

# include routers
app.include_router(automation_routes.router, prefix="/api")
app.include_router(frame_routes.router, prefix="/api")
app.include_router(events_routes.router, prefix="/api")
