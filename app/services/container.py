"""
Service container — one set of wired collaborators per Flask app.

``init_services(app)`` builds the stores and services from app.config and
stores them under ``app.extensions["achievement_services"]``. Blueprints
reach them through ``get_services()``; tests can swap any collaborator on
the container of their app.
"""

import logging
from dataclasses import dataclass

from flask import current_app

from app.services.achievement_lifecycle import AchievementLifecycle
from app.services.identity import IdentityProvider
from app.services.lecturer_service import LecturerService
from app.services.report_service import ReportService
from app.services.student_service import StudentService
from app.services.user_service import UserService
from app.stores.blob_store import LocalBlobStore
from app.stores.content_store import build_content_store
from app.stores.person_directory import PersonDirectory
from app.stores.reference_store import ReferenceStore

logger = logging.getLogger(__name__)

EXTENSION_KEY = "achievement_services"


@dataclass
class Services:
    references: ReferenceStore
    contents: object
    directory: PersonDirectory
    blobs: LocalBlobStore
    identity: IdentityProvider
    lifecycle: AchievementLifecycle
    reports: ReportService
    students: StudentService
    lecturers: LecturerService
    users: UserService


def build_services(config) -> Services:
    references = ReferenceStore()
    contents = build_content_store(config)
    directory = PersonDirectory()
    blobs = LocalBlobStore(config["UPLOAD_ROOT"], config.get("UPLOAD_URL_PREFIX", "/uploads"))
    return Services(
        references=references,
        contents=contents,
        directory=directory,
        blobs=blobs,
        identity=IdentityProvider(),
        lifecycle=AchievementLifecycle(references, contents, directory, blobs),
        reports=ReportService(references, contents, directory),
        students=StudentService(directory),
        lecturers=LecturerService(directory),
        users=UserService(directory, password_rounds=config.get("BCRYPT_ROUNDS")),
    )


def init_services(app) -> Services:
    services = build_services(app.config)
    app.extensions[EXTENSION_KEY] = services
    logger.debug("Services wired: content store %s", type(services.contents).__name__)
    return services


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]
