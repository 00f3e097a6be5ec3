"""应用配置模块"""
import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///data/ledger.db")

MCP_HOST = os.getenv("MCP_HOST", "0.0.0.0")
MCP_PORT = int(os.getenv("MCP_PORT", "8080"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# 交易列表分页默认条数
DEFAULT_PAGE_LIMIT = 100

MINOR_UNITS_PER_MAJOR = 100
