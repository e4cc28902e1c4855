#!/usr/bin/env python3
"""
Fake Ollama server for local development and testing.

Implements just enough of the Ollama API for setu-gateway:
- POST /api/generate (non-streaming, structured output)
- GET  /api/tags

The "model" answers with whatever the lexicon recognizes in the voice
input quoted inside the prompt, so translations are deterministic.

Run with: python scripts/fake_llm.py --port 11434
Then set in datasette.yaml:
    llm:
      provider: ollama
      base_url: http://127.0.0.1:11434
"""

import argparse
import json
import re
from datetime import UTC, datetime
from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import urlparse

from setu_gateway import lexicon

VOICE_INPUT_RE = re.compile(r'Voice Input: "(.*)"')

# Phrases that make the fake model answer with garbage, to exercise retries
GARBAGE_TRIGGERS = ("gibberish", "xyzzy")


def fake_completion(prompt: str) -> str:
    """Build the JSON text a model would return for this prompt."""
    match = VOICE_INPUT_RE.search(prompt)
    voice_text = match.group(1) if match else ""

    if any(trigger in voice_text.lower() for trigger in GARBAGE_TRIGGERS):
        return "I'm sorry, I didn't understand that."

    found = lexicon.scan(voice_text)
    name = found.product_name or "Fresh Produce"
    count, unit = found.quantity or (0, "kg")
    item = {
        "descriptor": {"name": name, "symbol": lexicon.commodity_icon(name)},
        "price": {"value": found.price or 0, "currency": "INR"},
        "quantity": {"available": {"count": count}, "unit": unit},
        "tags": {"perishability": "medium"},
    }
    if found.grade:
        item["tags"]["grade"] = found.grade
    return json.dumps(item)


class FakeOllamaHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the fake Ollama API."""

    def log_message(self, format: str, *args) -> None:
        """Override to add prefix."""
        print(f"[FakeOllama] {args[0]}")

    def send_json(self, data: dict, status: int = 200) -> None:
        """Send a JSON response."""
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.end_headers()
        self.wfile.write(json.dumps(data).encode())

    def send_error_json(self, status: int, message: str) -> None:
        """Send an Ollama-style error response."""
        self.send_json({"error": message}, status=status)

    def do_POST(self) -> None:
        """Handle POST requests."""
        path = urlparse(self.path).path

        content_length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(content_length).decode() if content_length > 0 else ""

        if path == "/api/generate":
            self.handle_generate(body)
        else:
            self.send_error_json(404, f"Unknown endpoint: {path}")

    def do_GET(self) -> None:
        """Handle GET requests."""
        path = urlparse(self.path).path
        if path == "/api/tags":
            self.send_json({"models": [{"name": "llama3.1:8b"}]})
        else:
            self.send_error_json(404, f"Unknown endpoint: {path}")

    def handle_generate(self, body: str) -> None:
        try:
            data = json.loads(body)
        except json.JSONDecodeError:
            self.send_error_json(400, "Invalid JSON body")
            return

        prompt = data.get("prompt")
        if not prompt:
            self.send_error_json(400, "Missing prompt")
            return

        self.send_json(
            {
                "model": data.get("model", "llama3.1:8b"),
                "created_at": datetime.now(UTC).isoformat(),
                "response": fake_completion(prompt),
                "done": True,
            }
        )


def main() -> None:
    parser = argparse.ArgumentParser(description="Run fake Ollama API server")
    parser.add_argument(
        "--port",
        type=int,
        default=11434,
        help="Port to listen on (default: 11434)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)",
    )
    args = parser.parse_args()

    server = HTTPServer((args.host, args.port), FakeOllamaHandler)
    print(f"Fake Ollama API running at http://{args.host}:{args.port}")
    print(f"Inputs containing {', '.join(GARBAGE_TRIGGERS)} get a non-JSON answer")
    print()

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\nShutting down...")
        server.shutdown()


if __name__ == "__main__":
    main()
