"""
支持 python -m kairo_desktop 方式运行
"""
import sys

from .app import main

if __name__ == "__main__":
    sys.exit(main())
