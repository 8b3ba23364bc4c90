"""
Dependencies for FastAPI routes.

Routes declare what they need and receive it from the ServiceContainer
stored on app.state by the application lifespan. Tests swap the container
(or override these dependencies) to inject fakes.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from contentvault.container import ServiceContainer
from contentvault.services.pipeline import ContentPipeline, FailedJobStore
from contentvault.services.rag import SearchEngine


def get_container(request: Request) -> ServiceContainer:
    container = getattr(request.app.state, "container", None)
    if container is None or container.pipeline is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up",
        )
    return container


ContainerDep = Annotated[ServiceContainer, Depends(get_container)]


def get_pipeline(container: ContainerDep) -> ContentPipeline:
    return container.pipeline


def get_search_engine(container: ContainerDep) -> SearchEngine:
    return container.search_engine


def get_failed_jobs(container: ContainerDep) -> FailedJobStore:
    return container.failed_jobs


PipelineDep = Annotated[ContentPipeline, Depends(get_pipeline)]
SearchEngineDep = Annotated[SearchEngine, Depends(get_search_engine)]
FailedJobsDep = Annotated[FailedJobStore, Depends(get_failed_jobs)]
