"""Canned HTTP responses and payloads for tests."""

import json

import httpx

BROKER_BASE = "https://broker.test/v2/acts"


def json_response(payload, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        content=json.dumps(payload).encode(),
        headers={"content-type": "application/json; charset=utf-8"},
    )


def html_response(html: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(
        status_code,
        content=html.encode(),
        headers={"content-type": "text/html; charset=utf-8"},
    )


LUMA_HTML = """<!DOCTYPE html><html><head><title>Sunset Jam</title></head><body>
<script id="__NEXT_DATA__" type="application/json">
{"props":{"pageProps":{"initialData":{"data":{
"event":{"api_id":"evt-123","name":"Sunset Jam","start_at":"2025-01-10T18:00:00.000Z",
"end_at":"2025-01-10T21:00:00.000Z","cover_url":"https://images.lumacdn.com/sunset.jpg",
"timezone":"Asia/Ho_Chi_Minh","geo_latitude":"11.9404","geo_longitude":"108.4583"},
"geo_address_info":{"city":"Da Lat","full_address":"1 Tran Hung Dao, Da Lat, Vietnam"},
"location_name":"Lake View Cafe",
"description_md":"Live music by the lake.\\nBring friends!",
"hosts":[{"api_id":"usr-1","name":"Dalat Jam Club"},{"api_id":"usr-2","name":"Other"}]
}}}}}
</script></body></html>"""


OPENGRAPH_HTML = """<!DOCTYPE html><html><head>
<title>Acoustic Night | Flip</title>
<meta property="og:site_name" content="Flip">
<meta property="og:title" content="Acoustic Night | Flip">
<meta property="og:description" content="An evening of acoustic covers.">
<meta property="og:image" content="https://flip.vn/img/acoustic.jpg">
</head><body>
<script>{"startDate":"2026-03-14T19:30:00+07:00","organizer":{"@type":"Organization","name":"Flip Music"}}</script>
</body></html>"""


def facebook_item(url: str, name: str = "Jazz Night", **extra) -> dict:
    item = {
        "url": url,
        "name": name,
        "utcStartDate": "2026-02-01T12:00:00.000Z",
        "location": {
            "name": "Dalat Jazz Bar",
            "city": "Da Lat",
            "latitude": 11.94,
            "longitude": 108.44,
        },
        "organizedBy": "Event by Dalat Jazz Club and Friends",
        "usersGoing": 12,
    }
    item.update(extra)
    return item


FLIP_SCHEDULE_HTML = """<!DOCTYPE html><html><head>
<title>Korea Spotlight Showcase | Flip</title>
<meta property="og:site_name" content="Flip">
<meta property="og:title" content="Korea Spotlight Showcase | Flip">
<meta property="og:description" content="T7, 22/11/2025 • 19:30 - 22:00 tại SECC – Outdoor, TP.HCM. Mua vé ngay trên Flip.">
<meta property="og:image" content="https://flip.vn/img/korea.jpg">
</head><body></body></html>"""


FLIP_MULTI_SHOWTIME_HTML = """<!DOCTYPE html><html><head>
<meta property="og:site_name" content="Flip">
<meta property="og:title" content="Puppet Theatre | Flip">
<meta property="og:description" content="Nhiều khung giờ tại Nhà hát Múa rối Thăng Long, Hà Nội. Mua vé ngay.">
</head><body></body></html>"""
