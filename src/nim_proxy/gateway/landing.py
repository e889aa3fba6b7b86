from __future__ import annotations

from html import escape
from string import Template

_PAGE = Template(
    """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>NVIDIA NIM Proxy</title>
  <style>
    * { margin: 0; padding: 0; box-sizing: border-box; }
    body {
      font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif;
      background: linear-gradient(135deg, #667eea 0%, #764ba2 100%);
      min-height: 100vh; display: flex; align-items: center;
      justify-content: center; padding: 20px;
    }
    .container {
      background: white; border-radius: 20px; max-width: 800px; width: 100%;
      padding: 40px; box-shadow: 0 20px 60px rgba(0,0,0,0.3);
    }
    h1 { color: #333; font-size: 2.2em; margin-bottom: 10px; text-align: center; }
    .subtitle { color: #666; text-align: center; margin-bottom: 25px; }
    .status {
      background: #f0f9ff; border-left: 4px solid #0ea5e9;
      padding: 15px; margin: 20px 0; border-radius: 5px;
    }
    .status-item {
      display: flex; justify-content: space-between; padding: 8px 0;
      border-bottom: 1px solid #e0e0e0;
    }
    .status-item:last-child { border-bottom: none; }
    .status-label { font-weight: 600; color: #555; }
    .status-value { color: #0ea5e9; font-weight: 500; }
    h2 {
      color: #333; font-size: 1.2em; margin: 25px 0 12px;
      padding-bottom: 8px; border-bottom: 2px solid #667eea;
    }
    .endpoint {
      background: #f8f9fa; padding: 15px; border-radius: 8px;
      font-family: 'Courier New', monospace; word-break: break-all;
    }
    .endpoint strong { color: #667eea; }
    li { padding: 6px 0; margin-left: 20px; }
    .disclaimer {
      background: #fef3c7; border-left: 4px solid #f59e0b;
      padding: 15px; margin-top: 25px; border-radius: 5px; font-size: 0.9em;
    }
  </style>
</head>
<body>
  <div class="container">
    <h1>NVIDIA NIM Proxy</h1>
    <p class="subtitle">OpenAI-Compatible API Gateway</p>
    <div class="status">
      <div class="status-item">
        <span class="status-label">Status:</span>
        <span class="status-value">Online</span>
      </div>
      <div class="status-item">
        <span class="status-label">Total Requests:</span>
        <span class="status-value">$total_requests</span>
      </div>
      <div class="status-item">
        <span class="status-label">Default Model:</span>
        <span class="status-value">$default_model</span>
      </div>
    </div>
    <h2>API Endpoint</h2>
    <div class="endpoint"><strong>Base URL:</strong> $base_url</div>
    <h2>Features</h2>
    <ul>
      <li>OpenAI-compatible API format</li>
      <li>Automatic message cleaning and formatting</li>
      <li>Support for custom API keys and models</li>
      <li>Real-time request tracking</li>
    </ul>
    <h2>Usage</h2>
    <div class="endpoint">
      <strong>API URL:</strong> $base_url<br>
      <strong>API Key:</strong> Your NVIDIA NIM API Key<br>
      <strong>Model:</strong> $default_model (or any NIM model)
    </div>
    <div class="disclaimer">
      <strong>Disclaimer:</strong> Use this service at your own risk.
      API keys are forwarded to the upstream service and never stored.
    </div>
  </div>
</body>
</html>
"""
)


def render_landing_page(base_url: str, total_requests: int, default_model: str) -> str:
    return _PAGE.substitute(
        base_url=escape(base_url),
        total_requests=f"{total_requests:,}",
        default_model=escape(default_model),
    )
