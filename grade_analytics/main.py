"""FastAPI application exposing the grade analytics engine."""

import logging
import traceback

from fastapi import FastAPI, File, UploadFile, Form, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from grade_analytics import config
from grade_analytics.errors import GradeAnalyticsError
from grade_analytics.models import (
    BoxPlotData,
    CorrelationRequest,
    CorrelationResponse,
    GradeAnalyticsReport,
    GradeStatistics,
    HistogramData,
    PredictionModel,
    StudentsRequest,
    TTestRequest,
    TTestResult,
    UploadResponse,
    ValuesRequest,
)
from grade_analytics.parsers import load_grade_sheet, normalize_grade_columns, records_to_students
from grade_analytics.prediction import create_linear_regression_model
from grade_analytics.report import analyze_courses, build_report
from grade_analytics.statistics import (
    calculate_correlation,
    calculate_statistics,
    correlation_strength,
    create_box_plot,
    create_histogram,
    t_test,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Grade Analytics Engine", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler_json(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions and return JSON."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail}
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler_json(request: Request, exc: RequestValidationError):
    """Handle validation errors and return JSON."""
    return JSONResponse(
        status_code=422,
        content={"detail": exc.errors()}
    )


@app.exception_handler(GradeAnalyticsError)
async def analytics_exception_handler(request: Request, exc: GradeAnalyticsError):
    """Report empty, mismatched or insufficient input as a client error."""
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "type": type(exc).__name__}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions and return JSON."""
    logger.exception("Unhandled error on %s", request.url.path)
    error_detail = str(exc)
    if config.DEBUG:
        error_detail = f"{str(exc)}\n\n{traceback.format_exc()}"

    return JSONResponse(
        status_code=500,
        content={
            "detail": f"Internal server error: {error_detail}",
            "type": type(exc).__name__
        }
    )


@app.get("/health")
async def health_check():
    """Health check endpoint to test server connectivity."""
    return JSONResponse(content={"status": "ok", "message": "Server is running"})


@app.post("/statistics", response_model=GradeStatistics)
async def statistics_endpoint(request: ValuesRequest):
    return calculate_statistics(request.values)


@app.post("/histogram", response_model=HistogramData)
async def histogram_endpoint(request: ValuesRequest):
    try:
        return create_histogram(request.values, request.bin_count, request.student_ids)
    except GradeAnalyticsError:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/box-plot", response_model=BoxPlotData)
async def box_plot_endpoint(request: ValuesRequest):
    return create_box_plot(request.values, request.student_ids, request.student_names)


@app.post("/correlation", response_model=CorrelationResponse)
async def correlation_endpoint(request: CorrelationRequest):
    try:
        r = calculate_correlation(request.x, request.y, request.method)
    except GradeAnalyticsError:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return CorrelationResponse(correlation=r, strength=correlation_strength(r), method=request.method)


@app.post("/t-test", response_model=TTestResult)
async def t_test_endpoint(request: TTestRequest):
    return t_test(request.sample1, request.sample2)


@app.post("/predictions", response_model=PredictionModel)
async def predictions_endpoint(request: StudentsRequest):
    """Fit the cohort regression and return per-student predictions."""
    return create_linear_regression_model(request.students)


@app.post("/report", response_model=GradeAnalyticsReport)
async def report_endpoint(request: StudentsRequest):
    """Build the full analytics report for one course."""
    return build_report(
        request.students,
        course_id=request.course_id,
        course_name=request.course_name,
        bin_count=request.bin_count,
        include_correlations=request.include_correlations,
        include_predictions=request.include_predictions,
    )


@app.post("/upload", response_model=UploadResponse)
async def upload_file(
    file: UploadFile = File(...),
    course_id: str = Form("course")
):
    """Upload a grade sheet and build one report per course."""
    file_bytes = await file.read()
    if len(file_bytes) > config.MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size: {config.MAX_UPLOAD_SIZE_MB}MB"
        )

    if not file.filename or not file.filename.lower().endswith((".xlsx", ".xls", ".csv")):
        raise HTTPException(
            status_code=400,
            detail="Invalid file type. Please upload an Excel (.xlsx, .xls) or CSV file"
        )

    try:
        raw_df = load_grade_sheet(file_bytes, file.filename)
        students = records_to_students(normalize_grade_columns(raw_df), default_course_id=course_id)
    except ValueError as e:
        logger.error("Error loading grade sheet %s: %s", file.filename, e)
        raise HTTPException(status_code=400, detail=f"Error loading grade sheet: {str(e)}")

    if not students:
        raise HTTPException(status_code=400, detail="No grade records found in the uploaded file.")

    reports = analyze_courses(students)
    logger.info("Built %d course report(s) from %s", len(reports), file.filename)

    return UploadResponse(
        success=True,
        message=f"Successfully processed {len(students)} student record(s)",
        reports=reports
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
