# -*- coding: utf-8 -*-
# Иерархия ошибок выгрузки.
from typing import Optional


class FillsDumpError(Exception):
    pass


class CredentialError(FillsDumpError):
    pass


class TransportError(FillsDumpError):
    def __init__(self, msg: str, page: Optional[int] = None, end_time: Optional[int] = None):
        super().__init__(msg)
        self.page = page
        self.end_time = end_time


class AuthError(FillsDumpError):
    pass


class DecodeError(FillsDumpError):
    pass


class PaginationStalled(FillsDumpError):
    pass


class IoError(FillsDumpError):
    pass
