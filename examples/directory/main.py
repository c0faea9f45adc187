"""
App composition — a service definition mounted via RpcModule, and a client calling it with credentials.
Serve with any ASGI server: uvicorn main:app
"""
import asyncio

from callgate import (
    Application,
    CallCredentials,
    EnvTokenSource,
    JsonHttpRpcTransport,
    MethodDescriptor,
    RpcClient,
    RpcModule,
    ServerServiceDefinition,
    ServiceDescriptor,
    Settings,
    Status,
    StatusCode,
    StatusError,
)

settings = Settings.from_env()

GET = MethodDescriptor.unary("employees.Directory", "Get")
DIRECTORY = ServiceDescriptor("employees.Directory", [GET])

EMPLOYEES = {"42": {"id": "42", "name": "Ada"}}


async def get_employee(request: dict, metadata) -> dict:
    if metadata.get("authorization") is None:
        raise StatusError(Status(StatusCode.UNAUTHENTICATED, "missing token"))
    employee = EMPLOYEES.get(request.get("id", ""))
    if employee is None:
        raise StatusError(Status(StatusCode.NOT_FOUND, f"no employee {request.get('id')!r}"))
    return employee


directory = ServerServiceDefinition.builder(DIRECTORY).add_method(GET, get_employee).build()

app = Application(config=settings)
app.register(RpcModule().server(directory))


async def lookup(employee_id: str) -> dict | None:
    # CALLGATE_AUTH_TOKEN must be set for the call to carry a token
    client = RpcClient(
        "http://127.0.0.1:8000",
        JsonHttpRpcTransport(base_path=settings.rpc_path),
        credentials=CallCredentials(EnvTokenSource(settings.auth_token_env)),
        executor=app.credential_executor,
    )
    return await client.call(GET, {"id": employee_id})


if __name__ == "__main__":
    try:
        print(asyncio.run(lookup("42")))
    finally:
        app.shutdown()
