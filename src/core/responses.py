from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse


def success_response(data: Any, message: str = "Success", status_code: int = status.HTTP_200_OK):
    return JSONResponse(
        status_code=status_code,
        content={
            "statusCode": status_code,
            "message": message,
            "data": data,
        }
    )


def error_response(request: Request, status_code: int, message: Any, error: Optional[str] = None):
    content = {
        "statusCode": status_code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
        "method": request.method,
        "message": message,
    }
    if error:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=content)
