"""
Knowledge feature: document upload, ingestion status and management routes.
"""

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from tutor_agent.core.dependencies import get_current_user_id, get_document_service
from tutor_agent.features.knowledge.schemas import DocumentSummary, JobStatusResponse, UploadAccepted
from tutor_agent.features.knowledge.service import DocumentService

router = APIRouter()


@router.post("", response_model=UploadAccepted, status_code=status.HTTP_202_ACCEPTED)
async def upload_document(
    file: UploadFile | None = File(None),
    title: str | None = Form(None),
    agent_id: str | None = Form(None),
    user_id: str = Depends(get_current_user_id),
    service: DocumentService = Depends(get_document_service),
):
    """
    Upload a PDF, DOCX, TXT or MD document to an agent's knowledge base.
    - Stores the file and registers an ingestion job in `processing`.
    - Extraction, chunking and embedding run in the background.
    Poll `/status/{job_id}` for the outcome.
    """
    data = await file.read() if file is not None else None
    return service.accept_upload(
        user_id=user_id,
        filename=file.filename if file is not None else None,
        data=data,
        title=title,
        agent_id=agent_id,
        content_type=file.content_type if file is not None else None,
    )


@router.get("/status/{job_id}", response_model=JobStatusResponse)
def get_ingestion_status(
    job_id: str,
    user_id: str = Depends(get_current_user_id),
    service: DocumentService = Depends(get_document_service),
):
    """Status of an upload: processing, completed, failed or not_found.

    Also accepts a document id once the job has been evicted from memory.
    """
    return service.get_status(user_id, job_id)


@router.get("/agent/{agent_id}")
def get_documents_by_agent(
    agent_id: str,
    user_id: str = Depends(get_current_user_id),
    service: DocumentService = Depends(get_document_service),
):
    """List the documents ingested for an agent, oldest first."""
    documents = service.list_documents(agent_id)
    return {
        "documents": [DocumentSummary.model_validate(doc.model_dump()) for doc in documents]
    }


@router.delete("/{document_id}")
def delete_document(
    document_id: str,
    user_id: str = Depends(get_current_user_id),
    service: DocumentService = Depends(get_document_service),
):
    """Delete a document together with all of its chunk vectors."""
    service.delete_document(user_id, document_id)
    return {"message": "Document deleted successfully"}
