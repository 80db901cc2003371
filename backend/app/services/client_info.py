import ipaddress

from fastapi import Request
from user_agents import parse

LOCAL_LOCATION = {"country": "Local", "city": "Local Development", "region": "Local"}

# Edge proxies that stamp the caller's location onto the request.
_COUNTRY_HEADERS = ("cf-ipcountry", "x-vercel-ip-country", "x-country")
_CITY_HEADERS = ("cf-ipcity", "x-vercel-ip-city", "x-city")
_REGION_HEADERS = ("cf-region", "x-vercel-ip-country-region", "x-region")


def client_ip(request: Request) -> str | None:
    headers = request.headers
    for name in ("cf-connecting-ip", "x-real-ip"):
        if headers.get(name):
            return headers[name].strip()
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _known(family: str | None) -> str:
    return family if family and family != "Other" else "Unknown"


def device_info(user_agent: str | None) -> dict | None:
    """Browser, OS and device class for a User-Agent header, or None when it is missing."""
    if not user_agent:
        return None
    agent = parse(user_agent)
    if agent.is_bot:
        device = "Bot"
    elif agent.is_tablet:
        device = "Tablet"
    elif agent.is_mobile:
        device = "Mobile"
    elif agent.is_pc:
        device = "Desktop"
    else:
        device = "Unknown"
    os_name = _known(agent.os.family)
    return {
        "browser": _known(agent.browser.family),
        "os": os_name,
        "device": device,
        "platform": f"{os_name} {device}",
    }


def _first_header(request: Request, names: tuple[str, ...]) -> str | None:
    for name in names:
        value = request.headers.get(name)
        if value:
            return value.strip()
    return None


def request_location(request: Request, ip_address: str | None) -> dict | None:
    country = _first_header(request, _COUNTRY_HEADERS)
    if country:
        location = {"country": country}
        city = _first_header(request, _CITY_HEADERS)
        region = _first_header(request, _REGION_HEADERS)
        if city:
            location["city"] = city
        if region:
            location["region"] = region
        return location

    try:
        address = ipaddress.ip_address(ip_address or "")
    except ValueError:
        return None
    if address.is_private or address.is_loopback:
        return dict(LOCAL_LOCATION)
    return None


def describe_request(request: Request) -> dict:
    """Keyword arguments for `log_activity` describing where a request came from."""
    ip = client_ip(request)
    user_agent = request.headers.get("user-agent") or None
    return {
        "ip_address": ip,
        "user_agent": user_agent,
        "device_info": device_info(user_agent),
        "location": request_location(request, ip),
    }
