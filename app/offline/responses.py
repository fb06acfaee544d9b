import json

from app.core.responses import ErrorDetail, ErrorEnvelope
from app.offline.stores import ResponseSnapshot

OFFLINE_ERROR_CODE = "OFFLINE"
OFFLINE_ERROR_MESSAGE = (
    "You are currently offline. Please check your internet connection."
)

OFFLINE_PAGE_HTML = """<!DOCTYPE html>
<html>
<head>
  <title>Offline - MindfulReplay</title>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <style>
    body {
      font-family: system-ui, sans-serif;
      text-align: center;
      padding: 2rem;
      background: #f9fafb;
    }
    .container {
      max-width: 400px;
      margin: 0 auto;
      background: white;
      padding: 2rem;
      border-radius: 8px;
      box-shadow: 0 1px 3px rgba(0,0,0,0.1);
    }
    h1 { color: #374151; margin-bottom: 1rem; }
    p { color: #6b7280; margin-bottom: 1.5rem; }
    button {
      background: #2563eb;
      color: white;
      border: none;
      padding: 0.75rem 1.5rem;
      border-radius: 6px;
      cursor: pointer;
      font-size: 1rem;
    }
    button:hover { background: #1d4ed8; }
  </style>
</head>
<body>
  <div class="container">
    <h1>You're Offline</h1>
    <p>It looks like you're not connected to the internet. Please check your connection and try again.</p>
    <button onclick="window.location.reload()">Try Again</button>
  </div>
</body>
</html>
"""


def offline_api_response() -> ResponseSnapshot:
    envelope = ErrorEnvelope(
        error=ErrorDetail(code=OFFLINE_ERROR_CODE, message=OFFLINE_ERROR_MESSAGE)
    )
    return ResponseSnapshot(
        status_code=503,
        headers=[("Content-Type", "application/json")],
        body=json.dumps(envelope.model_dump()).encode(),
    )


def offline_page_response() -> ResponseSnapshot:
    return ResponseSnapshot(
        status_code=200,
        headers=[("Content-Type", "text/html")],
        body=OFFLINE_PAGE_HTML.encode(),
    )
