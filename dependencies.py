from typing import Annotated

from fastapi import Depends, Request

from runtime import ChatRuntime


def get_runtime(request: Request) -> ChatRuntime:
    return request.app.state.runtime


RuntimeDep = Annotated[ChatRuntime, Depends(get_runtime)]
