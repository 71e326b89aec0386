from fastapi import Request

from comicshelf import config
from comicshelf.errors import error_response

BLOCKED_AGENTS = (
    "curl",
    "wget",
    "python-requests",
    "scrapy",
    "axios",
    "go-http-client",
    "java/",
    "libwww-perl",
    "httpclient",
    "okhttp",
    "postman",
)


def is_blocked_agent(user_agent: str) -> bool:
    if not user_agent:
        return True
    agent = user_agent.lower()
    return any(bot in agent for bot in BLOCKED_AGENTS)


async def block_bots(request: Request, call_next):
    if config.BLOCK_BOTS and request.method != "OPTIONS":
        if is_blocked_agent(request.headers.get("user-agent", "")):
            return error_response(403, "Access denied")
    return await call_next(request)
