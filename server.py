from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from pymongo.database import Database
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging
import os
from datetime import datetime, timezone

from dotenv import load_dotenv
load_dotenv()

# Twilio for WhatsApp replies
from twilio.twiml.messaging_response import MessagingResponse

# Local modules
import auth
import certificates_api
import children_api
import doctors_api
import reminders
import rewards_api
import store
import users_api
import vaccinations_api
from config import settings
from progress import InvalidDateError
from vaccinations import ScheduleError

VERSION = "1.0.0"

# ------------------ basic setup ------------------

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s:%(name)s: %(message)s",
)
logger = logging.getLogger("server")

app = FastAPI(title="Tateematy", version=VERSION)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
if os.path.isdir("public"):
    app.mount("/public", StaticFiles(directory="public"), name="public")

app.include_router(auth.router)
app.include_router(users_api.router)
app.include_router(users_api.admin_router)
app.include_router(children_api.router)
app.include_router(vaccinations_api.router)
app.include_router(certificates_api.router)
app.include_router(doctors_api.router)
app.include_router(rewards_api.router)

# ------------------ error envelopes ------------------

def _fail(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message, **extra})

@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    return _fail(exc.status_code, str(exc.detail))

@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return _fail(400, "Validation failed", errors=errors)

@app.exception_handler(InvalidDateError)
async def invalid_date(request: Request, exc: InvalidDateError):
    return _fail(400, str(exc))

@app.exception_handler(store.InvalidIdError)
async def invalid_id(request: Request, exc: store.InvalidIdError):
    return _fail(400, "Invalid ID format")

@app.exception_handler(ScheduleError)
async def schedule_error(request: Request, exc: ScheduleError):
    logger.error("Schedule configuration error: %s", exc)
    return _fail(500, "Vaccination schedule is not configured")

# ------------------ web UI + health ------------------

@app.get("/")
def index():
    path = os.path.join("public", "index.html")
    if os.path.exists(path):
        return HTMLResponse(open(path, "r", encoding="utf-8").read())
    return HTMLResponse("<h1>Tateematy</h1><p>UI not found.</p>")

@app.get("/health")
def health():
    return {
        "status": "OK",
        "message": "Tateematy Backend is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": VERSION,
    }

# ------------------ WhatsApp webhook ------------------

def whatsapp_sender(raw: str) -> str:
    return (raw or "").strip().removeprefix("whatsapp:")

@app.post("/whatsapp")
async def whatsapp_webhook(
    request: Request,
    db: Database = Depends(store.get_db),
    schedule=Depends(vaccinations_api.get_schedule),
):
    form = await request.form()
    body = (form.get("Body") or "").strip()
    mobile = whatsapp_sender(form.get("From"))

    parent = store.find_user_by_mobile(db, mobile) if mobile else None
    if parent is not None and parent.get("userType") != "parent":
        parent = None

    children = []
    if parent is not None:
        for child in store.children_for_parent(db, parent["_id"]):
            children.append((child, vaccinations_api.report_for_child(db, child, schedule)))

    result = reminders.process_message(body, parent, children)
    logger.info("[whatsapp] %s reply to %s", result["type"], mobile or "unknown sender")

    resp = MessagingResponse()
    resp.message(result["answer"])

    return PlainTextResponse(content=str(resp), media_type="application/xml")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("server:app", host="0.0.0.0", port=settings.PORT)
