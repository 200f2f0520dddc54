"""Pet store routes."""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from ..models import Category, Image, Pet, Tag
from ..services.database import get_db
from ..services.policies import READER_POLICY, WRITER_POLICY, require_policy


router = APIRouter(prefix="/pet", tags=["pets"])

read_access = Depends(require_policy(READER_POLICY))
write_access = Depends(require_policy(WRITER_POLICY))


# Request/Response Models
class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class CategoryModel(ApiModel):
    id: Optional[int] = None
    name: Optional[str] = None


class ImageModel(ApiModel):
    id: Optional[int] = None
    url: Optional[str] = None


class TagModel(ApiModel):
    id: Optional[int] = None
    name: Optional[str] = None


class PetModel(ApiModel):
    id: Optional[int] = None
    name: str = Field(..., min_length=1, max_length=200)
    age: int = Field(0, ge=0)
    has_vaccinations: bool = False
    status: Optional[str] = Field(None, max_length=50)
    category: Optional[CategoryModel] = None
    images: List[ImageModel] = Field(default_factory=list)
    tags: List[TagModel] = Field(default_factory=list)


def _pet_query():
    return (
        select(Pet)
        .options(selectinload(Pet.category), selectinload(Pet.images), selectinload(Pet.tags))
        .order_by(Pet.id)
    )


def _first_or_404(db: Session, query) -> PetModel:
    pet = db.scalars(query.limit(1)).first()
    if pet is None:
        raise HTTPException(status_code=404, detail="Pet not found")
    return PetModel.model_validate(pet)


def _resolve_category(db: Session, model: Optional[CategoryModel]) -> Optional[Category]:
    """Reuse an existing category by id, otherwise create one."""
    if model is None:
        return None
    if model.id is not None:
        existing = db.get(Category, model.id)
        if existing is not None:
            return existing
    return Category(name=model.name)


# Lookup routes come before "/{pet_id}" so their paths are not parsed as ids
@router.get("/findByCategory/{category_id}", response_model=PetModel, dependencies=[read_access])
def find_by_category(category_id: int, db: Session = Depends(get_db)):
    return _first_or_404(db, _pet_query().where(Pet.category_id == category_id))


@router.get("/findByStatus", response_model=PetModel, dependencies=[read_access])
def find_by_status(status: str = Query(...), db: Session = Depends(get_db)):
    return _first_or_404(db, _pet_query().where(Pet.status == status))


@router.get("/findByTags", response_model=PetModel, dependencies=[read_access])
def find_by_tags(tags: List[str] = Query(...), db: Session = Depends(get_db)):
    tagged = select(Tag.pet_id).where(Tag.name.in_(tags))
    return _first_or_404(db, _pet_query().where(Pet.id.in_(tagged)))


@router.get("/{pet_id}", response_model=PetModel, dependencies=[read_access])
def find_by_id(pet_id: int, db: Session = Depends(get_db)):
    return _first_or_404(db, _pet_query().where(Pet.id == pet_id))


@router.post("", response_model=PetModel, status_code=201, dependencies=[write_access])
def add_pet(body: PetModel, response: Response, db: Session = Depends(get_db)):
    """Store a new pet. Ids in the body are ignored; the database assigns them."""
    pet = Pet(
        name=body.name,
        age=body.age,
        has_vaccinations=body.has_vaccinations,
        status=body.status,
        category=_resolve_category(db, body.category),
        images=[Image(url=image.url) for image in body.images],
        tags=[Tag(name=tag.name) for tag in body.tags],
    )
    try:
        db.add(pet)
        db.commit()
    except Exception:
        db.rollback()
        raise

    response.headers["Location"] = f"/pet/{pet.id}"
    return _first_or_404(db, _pet_query().where(Pet.id == pet.id))


@router.put("", dependencies=[write_access])
def edit_pet():
    raise HTTPException(status_code=501, detail="Editing pets is not implemented")


@router.post("/{pet_id}/uploadImage", dependencies=[write_access])
def upload_image(pet_id: int):
    raise HTTPException(status_code=501, detail="Image upload is not implemented")


@router.delete("/{pet_id}", status_code=204, dependencies=[write_access])
def delete_pet(pet_id: int, db: Session = Depends(get_db)):
    pet = db.get(Pet, pet_id)
    if pet is None:
        raise HTTPException(status_code=404, detail="Pet not found")
    try:
        db.delete(pet)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return Response(status_code=204)
