from fastapi import APIRouter


router = APIRouter(tags=["Health"])


@router.get("/health")
def health():
    return {"message": "Comedy Connect booking core is running"}
