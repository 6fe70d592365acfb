# Copyright (C) 2024 Uraba Logistics Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Run the server: python -m uraba_server"""

import logging

import uvicorn

from uraba_server.config import settings


def main() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("uraba_server.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
