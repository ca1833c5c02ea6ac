from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, constr

from qbank_ingest.core.config import settings
from qbank_ingest.core.database import SessionLocal
from qbank_ingest.core.errors import DecodeError, QuestionBankNotFound
from qbank_ingest.models.content import QuestionType
from qbank_ingest.models.schemas import BatchReport
from qbank_ingest.services.decoders import FileFormat
from qbank_ingest.services.pipeline import IngestPipeline
from qbank_ingest.services.samples import generate_sample_file, generate_template, sample_filename
from qbank_ingest.services.storage import SqlQuestionStore, bank_partition_key

router = APIRouter()


def get_store() -> SqlQuestionStore:
    return SqlQuestionStore(SessionLocal)


class QuestionBankCreate(BaseModel):
    name: constr(min_length=1, max_length=255)
    institution_id: constr(min_length=1, max_length=64)
    description: Optional[str] = None
    created_by: str = "system"


class QuestionBankCreated(BaseModel):
    id: str
    name: str
    institution_id: str
    partition_key: str


@router.post("", response_model=QuestionBankCreated, status_code=201)
def create_question_bank(payload: QuestionBankCreate, store: SqlQuestionStore = Depends(get_store)):
    qb = store.create_question_bank(
        name=payload.name,
        institution_id=payload.institution_id,
        created_by=payload.created_by,
        description=payload.description,
    )
    return QuestionBankCreated(
        id=qb.id, name=qb.name, institution_id=qb.institution_id,
        partition_key=bank_partition_key(qb.institution_id),
    )


@router.post("/{question_bank_id}/bulk-upload", response_model=BatchReport)
def bulk_upload(
    question_bank_id: str,
    file: UploadFile = File(...),
    format: Optional[FileFormat] = Form(None),
    validate_only: bool = Form(False),
    created_by: Optional[str] = Form(None),
    store: SqlQuestionStore = Depends(get_store),
):
    data = file.file.read(settings.MAX_UPLOAD_SIZE + 1)
    if len(data) > settings.MAX_UPLOAD_SIZE:
        raise HTTPException(413, f"File exceeds the {settings.MAX_UPLOAD_SIZE} byte upload limit")
    file_format = format or FileFormat.from_filename(file.filename)
    if file_format is None:
        raise HTTPException(400, "Could not determine the file format; pass 'format' as csv, excel or json")

    pipeline = IngestPipeline(store)
    try:
        return pipeline.ingest(
            data, file_format, question_bank_id, validate_only=validate_only, created_by=created_by
        )
    except DecodeError as e:
        raise HTTPException(400, str(e))
    except QuestionBankNotFound:
        raise HTTPException(404, "Question bank not found")


@router.get("/templates/{question_type}", response_class=PlainTextResponse)
def download_template(question_type: QuestionType):
    return PlainTextResponse(generate_template(question_type), media_type="text/csv")


@router.get("/samples/{question_type}")
def download_sample(question_type: QuestionType, format: FileFormat = Query(FileFormat.CSV)):
    content = generate_sample_file(question_type, format)
    filename = sample_filename(question_type, format)
    return Response(
        content=content,
        media_type=format.media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
