#!/usr/bin/env python3
"""
开发环境启动脚本

使用方式:
    python run_dev.py
    python run_dev.py --port 8080 --no-reload

配置读取顺序：环境变量 > .env > settings.yaml（见 src/config/config.py），
例如 LLM__API_KEY=sk-xxx python run_dev.py
"""

import argparse
import os
import sys

# 确保 backend 目录在 Python 路径中
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))


def main():
    parser = argparse.ArgumentParser(description="Research Pilot review simulator (dev server)")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=3000, help="Port to bind (default: 3000)")
    parser.add_argument("--reload", action="store_true", default=True, help="Enable auto-reload (default: True)")
    parser.add_argument("--no-reload", dest="reload", action="store_false", help="Disable auto-reload")
    parser.add_argument("--log-level", default="info", choices=["debug", "info", "warning", "error"], help="Log level")
    args = parser.parse_args()

    import uvicorn

    print(f"🚀 Review simulator on http://{args.host}:{args.port}  (docs: /docs, reload: {args.reload})")

    # 审稿任务只存在内存里：reload / 重启都会清空任务表
    uvicorn.run(
        "main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
    )


if __name__ == "__main__":
    main()
