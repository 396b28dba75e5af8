import uuid
from typing import Any, Dict, List, Optional
from fastapi import status, Request
from fastapi.responses import JSONResponse
from app.schemas.response_schemas import ApiResponse, PaginationMeta, ResponseStatus


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


class ResponseBuilder:
    """Builds the JSON envelope every route and error handler returns"""

    @staticmethod
    def _build(
        request: Request,
        success: bool,
        message: str,
        status_code: int,
        **fields: Any,
    ) -> JSONResponse:
        response = ApiResponse(
            success=success,
            status=ResponseStatus.SUCCESS if success else ResponseStatus.ERROR,
            message=message,
            request_id=_request_id(request),
            path=str(request.url.path),
            **fields,
        )
        return JSONResponse(
            status_code=status_code,
            content=response.model_dump(by_alias=True, exclude_none=True),
        )

    @staticmethod
    def success(
        request: Request,
        data: Any = None,
        message: str = "Request successful",
        meta: Optional[Dict[str, Any]] = None,
        pagination: Optional[PaginationMeta] = None,
        status_code: int = status.HTTP_200_OK,
    ) -> JSONResponse:
        return ResponseBuilder._build(
            request,
            True,
            message,
            status_code,
            data=data,
            meta=meta,
            pagination=pagination,
        )

    @staticmethod
    def created(
        request: Request, data: Any = None, message: str = "Created"
    ) -> JSONResponse:
        return ResponseBuilder.success(
            request, data=data, message=message, status_code=status.HTTP_201_CREATED
        )

    @staticmethod
    def error(
        request: Request,
        message: str = "An error occurred",
        errors: Optional[List[Dict[str, Any]]] = None,
        error_code: Optional[str] = None,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        data: Any = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> JSONResponse:
        """``error_code`` is folded into ``meta`` next to any caller-supplied keys"""
        response_meta = dict(meta or {})
        if error_code:
            response_meta["error_code"] = error_code

        return ResponseBuilder._build(
            request,
            False,
            message,
            status_code,
            data=data,
            meta=response_meta or None,
            errors=errors,
        )

    @staticmethod
    def paginated(
        request: Request,
        data: List[Any],
        page: int,
        per_page: int,
        total: int,
        message: str = "Data retrieved successfully",
        meta: Optional[Dict[str, Any]] = None,
    ) -> JSONResponse:
        return ResponseBuilder.success(
            request=request,
            data=data,
            message=message,
            meta=meta,
            pagination=PaginationMeta.for_page(page, per_page, total),
        )
