from typing import Annotated

from fastapi import Depends, Request

from app.services.gateway import OfflineGateway


def get_gateway(request: Request) -> OfflineGateway:
    return request.app.state.gateway


GatewayDependency = Annotated[OfflineGateway, Depends(get_gateway)]
