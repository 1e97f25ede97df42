# Run from project root: uvicorn app.main:app --reload

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.routes import router
from app.core.config import LOG_LEVEL

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
for _noisy in ("httpx", "openai", "pymilvus"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)


app = FastAPI(title="Knowledge-Base Chat Coach")
app.include_router(router)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request body")
    detail = f"Invalid request body: {location}: {message}" if location else f"Invalid request body: {message}"
    return JSONResponse(status_code=400, content={"error": detail})


if __name__ == "__main__":
    print("Knowledge-base chat coach booting...")
