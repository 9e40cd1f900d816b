"""Jinja2 templates for generated entity modules.

Each generated entity gets a package ``<output_dir>/<module>/`` holding a
SQLAlchemy model, pydantic DTOs, a CRUD service and a FastAPI router. The
output root also carries shared support files (declarative base, router
registry).
"""

from __future__ import annotations

from jinja2 import DictLoader, Environment, StrictUndefined

MODELS_TEMPLATE = '''\
"""SQLAlchemy model for {{ entity.name }}.

Generated by sirhgen; edits are overwritten on the next generation.
"""

from __future__ import annotations

from datetime import date, datetime  # noqa: F401
from decimal import Decimal  # noqa: F401
from typing import Any  # noqa: F401

from sqlalchemy import (  # noqa: F401
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship  # noqa: F401

from ..base import Base
{% for junction in junctions %}

{{ junction.variable }} = Table(
    "{{ junction.name }}",
    Base.metadata,
    Column(
        "{{ junction.source_column }}",
        Integer,
        ForeignKey("{{ entity.table }}.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "{{ junction.target_column }}",
        Integer,
        ForeignKey("{{ junction.target_table }}.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)
{% endfor %}


class {{ entity.name }}(Base):
    __tablename__ = "{{ entity.table }}"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
{% for column in columns %}
    {{ column.name }}: Mapped[{{ column.annotation }}] = mapped_column({{ column.args }})
{% endfor %}
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
{% if relationships %}

{% for rel in relationships %}
    {{ rel.name }}: Mapped[{{ rel.annotation }}] = relationship(
{% for arg in rel.args %}
        {{ arg }},
{% endfor %}
    )
{% endfor %}
{% endif %}

    def __repr__(self) -> str:
        return f"<{{ entity.name }} id={self.id}>"
'''

DTO_TEMPLATE = '''\
"""Request and response schemas for {{ entity.name }}.

Generated by sirhgen; edits are overwritten on the next generation.
"""

from __future__ import annotations

from datetime import date, datetime  # noqa: F401
from decimal import Decimal  # noqa: F401
from typing import Any  # noqa: F401

from pydantic import BaseModel, ConfigDict, Field  # noqa: F401


class {{ entity.name }}Create(BaseModel):
{% for field in inputs %}
    {{ field.name }}: {{ field.create_annotation }}
{% else %}
    pass
{% endfor %}


class {{ entity.name }}Update(BaseModel):
{% for field in inputs %}
    {{ field.name }}: {{ field.update_annotation }}
{% else %}
    pass
{% endfor %}


class {{ entity.name }}Read(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
{% for field in outputs %}
    {{ field.name }}: {{ field.read }}
{% endfor %}
    created_at: datetime
    updated_at: datetime
'''

SERVICE_TEMPLATE = '''\
"""CRUD service for {{ entity.name }}.

Generated by sirhgen; edits are overwritten on the next generation.
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from .dto import {{ entity.name }}Create, {{ entity.name }}Update
from .models import {{ entity.name }}
{% for item in imports %}
from ..{{ item.module }}.models import {{ item.name }}
{% endfor %}


class {{ entity.name }}NotFound(LookupError):
    """No {{ entity.name }} row with the requested id."""


class {{ entity.name }}Service:
    """List, get, create, update and delete {{ entity.name }} rows."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def list(self, skip: int = 0, limit: int = 100) -> Sequence[{{ entity.name }}]:
        stmt = select({{ entity.name }}).order_by({{ entity.name }}.id).offset(skip).limit(limit)
        return self._session.scalars(stmt).all()

    def get(self, item_id: int) -> {{ entity.name }}:
        item = self._session.get({{ entity.name }}, item_id)
        if item is None:
            raise {{ entity.name }}NotFound(f"{{ entity.name }} {item_id} not found")
        return item

    def create(self, data: {{ entity.name }}Create) -> {{ entity.name }}:
        item = {{ entity.name }}(**data.model_dump(exclude={{ exclude }}))
{% for rel in many_to_many %}
        item.{{ rel.name }} = self._load_{{ rel.name }}(data.{{ rel.name }}_ids)
{% endfor %}
        self._session.add(item)
        self._session.commit()
        self._session.refresh(item)
        return item

    def update(self, item_id: int, data: {{ entity.name }}Update) -> {{ entity.name }}:
        item = self.get(item_id)
        for key, value in data.model_dump(exclude_unset=True, exclude={{ exclude }}).items():
            setattr(item, key, value)
{% for rel in many_to_many %}
        if data.{{ rel.name }}_ids is not None:
            item.{{ rel.name }} = self._load_{{ rel.name }}(data.{{ rel.name }}_ids)
{% endfor %}
        self._session.commit()
        self._session.refresh(item)
        return item

    def delete(self, item_id: int) -> None:
        item = self.get(item_id)
        self._session.delete(item)
        self._session.commit()
{% for rel in many_to_many %}

    def _load_{{ rel.name }}(self, ids: list[int]) -> list[{{ rel.target }}]:
        if not ids:
            return []
        stmt = select({{ rel.target }}).where({{ rel.target }}.id.in_(ids))
        return list(self._session.scalars(stmt))
{% endfor %}
'''

CONTROLLER_TEMPLATE = '''\
"""HTTP routes for {{ entity.name }}.

Generated by sirhgen; edits are overwritten on the next generation.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..base import get_session
from .dto import {{ entity.name }}Create, {{ entity.name }}Read, {{ entity.name }}Update
from .service import {{ entity.name }}NotFound, {{ entity.name }}Service

router = APIRouter(prefix="/{{ entity.route }}", tags=["{{ entity.name }}"])


def get_service(session: Session = Depends(get_session)) -> {{ entity.name }}Service:
    return {{ entity.name }}Service(session)


@router.get("", response_model=list[{{ entity.name }}Read])
def list_{{ entity.plural }}(
    skip: int = 0,
    limit: int = 100,
    service: {{ entity.name }}Service = Depends(get_service),
):
    return service.list(skip=skip, limit=limit)


@router.get("/{item_id}", response_model={{ entity.name }}Read)
def get_{{ entity.module }}(item_id: int, service: {{ entity.name }}Service = Depends(get_service)):
    try:
        return service.get(item_id)
    except {{ entity.name }}NotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.post("", response_model={{ entity.name }}Read, status_code=status.HTTP_201_CREATED)
def create_{{ entity.module }}(
    data: {{ entity.name }}Create,
    service: {{ entity.name }}Service = Depends(get_service),
):
    return service.create(data)


@router.patch("/{item_id}", response_model={{ entity.name }}Read)
def update_{{ entity.module }}(
    item_id: int,
    data: {{ entity.name }}Update,
    service: {{ entity.name }}Service = Depends(get_service),
):
    try:
        return service.update(item_id, data)
    except {{ entity.name }}NotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_{{ entity.module }}(
    item_id: int,
    service: {{ entity.name }}Service = Depends(get_service),
) -> None:
    try:
        service.delete(item_id)
    except {{ entity.name }}NotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
'''

PACKAGE_TEMPLATE = '''\
"""Generated {{ entity.name }} module."""

from .controller import router
from .models import {{ entity.name }}

__all__ = ["{{ entity.name }}", "router"]
'''

BASE_TEMPLATE = '''\
"""Declarative base and session dependency shared by generated modules.

Generated by sirhgen; edits are overwritten on the next generation.
"""

from __future__ import annotations

import os
from collections.abc import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

engine = create_engine(os.environ.get("DATABASE_URL", "sqlite:///./app.db"))
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


def get_session() -> Iterator[Session]:
    with SessionLocal() as session:
        yield session
'''

ROUTERS_TEMPLATE = '''\
"""Routers of every generated entity, for inclusion in the application.

Generated by sirhgen; edits are overwritten on the next generation.
"""

from __future__ import annotations

from fastapi import APIRouter

{% for module in modules %}
from .{{ module.module }} import router as {{ module.module }}_router
{% endfor %}

ROUTERS: list[APIRouter] = [
{% for module in modules %}
    {{ module.module }}_router,
{% endfor %}
]
'''

ROOT_PACKAGE_TEMPLATE = '''\
"""Entities generated by sirhgen."""
'''

# File name -> template name, per entity module
ENTITY_FILES = {
    "models.py": "models",
    "dto.py": "dto",
    "service.py": "service",
    "controller.py": "controller",
    "__init__.py": "package",
}

# File name -> template name, at the output root
SUPPORT_FILES = {
    "__init__.py": "root_package",
    "base.py": "base",
    "routers.py": "routers",
}


def create_environment() -> Environment:
    """Jinja2 environment holding every artifact template."""
    return Environment(
        loader=DictLoader(
            {
                "models": MODELS_TEMPLATE,
                "dto": DTO_TEMPLATE,
                "service": SERVICE_TEMPLATE,
                "controller": CONTROLLER_TEMPLATE,
                "package": PACKAGE_TEMPLATE,
                "base": BASE_TEMPLATE,
                "routers": ROUTERS_TEMPLATE,
                "root_package": ROOT_PACKAGE_TEMPLATE,
            }
        ),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        autoescape=False,
    )
