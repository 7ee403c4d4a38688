"""
Конвертация изображений и работа с файлами.

Конвертер - внешний "черный ящик" с сигнатурой
``converter(data: bytes, options: ConversionOptions) -> bytes``.
Он передается в воркер-процессы, поэтому должен быть функцией верхнего
уровня импортируемого модуля.
"""

import os
from io import BytesIO
from pathlib import Path
from typing import Callable
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError
from pillow_heif import register_heif_opener

from ..utils.logger import get_logger
from ..exceptions import ConversionError, ReadError, WriteError


logger = get_logger(__name__)

register_heif_opener()


@dataclass
class ConversionOptions:
    """Параметры конвертации."""
    format: str = "JPEG"
    quality: float = 1.0  # 0..1, как в heic-convert

    @property
    def pillow_quality(self) -> int:
        """Качество в шкале Pillow (1..100)."""
        return max(1, min(100, round(self.quality * 100)))


Converter = Callable[[bytes, ConversionOptions], bytes]


def convert_image(data: bytes, options: ConversionOptions) -> bytes:
    """
    Конвертер по умолчанию: Pillow с HEIF-плагином.

    Raises:
        ConversionError: вход не распознан как изображение или кодирование не удалось
    """
    try:
        with Image.open(BytesIO(data)) as image:
            if options.format.upper() in ("JPEG", "JPG") and image.mode not in ("RGB", "L"):
                image = image.convert("RGB")
            output = BytesIO()
            image.save(output, format=options.format.upper(), quality=options.pillow_quality)
            return output.getvalue()
    except UnidentifiedImageError as e:
        raise ConversionError(f"Unsupported or malformed image: {e}") from e
    except (OSError, ValueError, KeyError) as e:
        raise ConversionError(f"Conversion to {options.format} failed: {e}") from e


def read_file(path) -> bytes:
    """Чтение входного файла."""
    try:
        with open(path, 'rb') as f:
            return f.read()
    except OSError as e:
        raise ReadError(f"Cannot read {os.fspath(path)}: {e.strerror or e}") from e


def write_file(path, data: bytes) -> int:
    """Запись результата (родительские директории создаются)."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'wb') as f:
            return f.write(data)
    except OSError as e:
        raise WriteError(f"Cannot write {path}: {e.strerror or e}") from e


def convert_file(input_path, output_path, converter: Converter, options: ConversionOptions) -> int:
    """
    Прочитать, сконвертировать, записать.

    Returns:
        Количество записанных байт

    Raises:
        ReadError, ConversionError, WriteError
    """
    data = read_file(input_path)

    try:
        output = converter(data, options)
    except ConversionError:
        raise
    except Exception as e:
        raise ConversionError(f"Converter failed: {e}") from e

    if not isinstance(output, (bytes, bytearray, memoryview)):
        raise ConversionError(f"Converter returned {type(output).__name__}, expected bytes")

    return write_file(output_path, bytes(output))
