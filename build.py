#!/usr/bin/env python3
from sitepress.cli import main

if __name__ == "__main__":
    main()
