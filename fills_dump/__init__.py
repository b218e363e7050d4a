# -*- coding: utf-8 -*-
# Выгрузка истории исполнений (fills) с биржи в посуточные файлы.
__version__ = "0.1.0"
