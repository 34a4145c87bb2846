from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from sitebind import models, schemas
from sitebind.renderer import SiteBindings


logger = logging.getLogger("sitebind.store")

_ReadModel = TypeVar("_ReadModel", bound=BaseModel)


class StoreConflictError(ValueError):
    """Raised when a record would duplicate a unique site or API name."""


def _new_record_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def _validated(model: type[_ReadModel], rows: Iterable[Any], *, site_name: str) -> list[_ReadModel]:
    records: list[_ReadModel] = []
    for row in rows:
        try:
            records.append(model.model_validate(row))
        except ValidationError as exc:
            logger.warning(
                "skipping_malformed_record site=%s type=%s errors=%s",
                site_name,
                model.__name__,
                exc.error_count(),
            )
    return records


class SiteStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def list_sites(self, *, limit: int, offset: int) -> list[models.Site]:
        return self.db.scalars(
            select(models.Site).order_by(models.Site.name.asc()).offset(offset).limit(limit)
        ).all()

    def get_site(self, name: str) -> models.Site | None:
        return self.db.scalar(select(models.Site).where(models.Site.name == name))

    def sync_site_folders(self, folder_names: Iterable[str]) -> list[str]:
        existing = set(self.db.scalars(select(models.Site.name)).all())
        created = [name for name in folder_names if name not in existing]
        if not created:
            return []

        for name in created:
            self.db.add(models.Site(name=name))
        self.db.commit()
        logger.info("site_records_discovered names=%s", ",".join(created))
        return created

    def create_site(self, name: str) -> models.Site:
        site = models.Site(name=name)
        self.db.add(site)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise StoreConflictError("site exists")
        self.db.refresh(site)
        return site

    def get_api(self, site: models.Site, api_name: str) -> models.ApiDefinition | None:
        return self.db.scalar(
            select(models.ApiDefinition).where(
                models.ApiDefinition.site_id == site.id,
                models.ApiDefinition.name == api_name,
            )
        )

    def add_api(self, site: models.Site, payload: schemas.ApiDefinitionCreate) -> models.ApiDefinition:
        api = models.ApiDefinition(
            site_id=site.id,
            name=payload.name,
            url=payload.url,
            method=payload.method,
            headers=dict(payload.headers),
            params=dict(payload.params),
            body_template=payload.body_template,
            mapping_config=(
                payload.mapping_config.model_dump(by_alias=True) if payload.mapping_config is not None else None
            ),
        )
        self.db.add(api)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise StoreConflictError("api name exists")
        self.db.refresh(api)
        return api

    def update_api(
        self,
        api: models.ApiDefinition,
        payload: schemas.ApiDefinitionUpdate,
    ) -> models.ApiDefinition:
        provided = payload.model_fields_set
        if "url" in provided and payload.url is not None:
            api.url = payload.url
        if "method" in provided and payload.method is not None:
            api.method = payload.method
        if "headers" in provided:
            api.headers = dict(payload.headers or {})
        if "params" in provided:
            api.params = dict(payload.params or {})
        if "body_template" in provided:
            api.body_template = payload.body_template
        if "mapping_config" in provided:
            api.mapping_config = (
                payload.mapping_config.model_dump(by_alias=True) if payload.mapping_config is not None else None
            )
        self.db.commit()
        self.db.refresh(api)
        return api

    def delete_api(self, api: models.ApiDefinition) -> None:
        self.db.delete(api)
        self.db.commit()

    def add_mapping(self, site: models.Site, payload: schemas.MappingCreate) -> models.MappingRecord:
        record = models.MappingRecord(
            site_id=site.id,
            placeholder=payload.placeholder,
            api_name=payload.api_name,
            json_path=payload.json_path,
            pages=list(payload.pages),
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def add_action(self, site: models.Site, payload: schemas.ActionCreate) -> models.ActionRecord:
        record = models.ActionRecord(
            id=_new_record_id("action"),
            site_id=site.id,
            selector=payload.selector,
            api_name=payload.api_name,
            method=payload.method,
            fields=list(payload.fields),
            page=payload.page or None,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def upsert_page_mapping(self, site: models.Site, payload: schemas.PageMappingUpsert) -> models.PageMapping:
        record = self.get_page_mapping(site, page=payload.page, api_name=payload.api_name)
        if record is None:
            record = models.PageMapping(
                id=_new_record_id("pm"),
                site_id=site.id,
                page=payload.page,
                api_name=payload.api_name,
                method=payload.method or "POST",
                field_mappings=dict(payload.field_mappings or {}),
                submit_selector=payload.submit_selector or None,
            )
            self.db.add(record)
        else:
            if payload.method is not None:
                record.method = payload.method
            if payload.field_mappings is not None:
                record.field_mappings = dict(payload.field_mappings)
            if payload.submit_selector is not None:
                record.submit_selector = payload.submit_selector
        self.db.commit()
        self.db.refresh(record)
        return record

    def get_page_mapping(self, site: models.Site, *, page: str, api_name: str) -> models.PageMapping | None:
        return self.db.scalar(
            select(models.PageMapping).where(
                models.PageMapping.site_id == site.id,
                models.PageMapping.page == page,
                models.PageMapping.api_name == api_name,
            )
        )

    def list_page_mappings(self, site: models.Site, *, page: str) -> list[models.PageMapping]:
        return self.db.scalars(
            select(models.PageMapping)
            .where(models.PageMapping.site_id == site.id, models.PageMapping.page == page)
            .order_by(models.PageMapping.seq.asc())
        ).all()

    def pages_for_api(self, site: models.Site, api_name: str) -> list[str]:
        pages: list[str] = []
        pages.extend(action.page for action in site.actions if action.api_name == api_name and action.page)
        for mapping in site.mappings:
            if mapping.api_name == api_name:
                pages.extend(page for page in mapping.pages or [] if page)
        pages.extend(pm.page for pm in site.page_mappings if pm.api_name == api_name and pm.page)
        return list(dict.fromkeys(pages))

    def load_bindings(self, site_name: str) -> SiteBindings | None:
        """
        Read the API definitions and mapping/action records of a site.

        Returns ``None`` when the site has no record; such a site is served
        unbound. Falls back to empty bindings when the store cannot be read.
        """

        try:
            site = self.get_site(site_name)
            if site is None:
                return None

            return SiteBindings(
                apis=_validated(schemas.ApiDefinitionRead, site.apis, site_name=site_name),
                mappings=_validated(schemas.MappingRead, site.mappings, site_name=site_name),
                actions=_validated(schemas.ActionRead, site.actions, site_name=site_name),
            )
        except SQLAlchemyError:
            logger.exception("site_store_unreadable site=%s", site_name)
            self.db.rollback()
            return SiteBindings()
