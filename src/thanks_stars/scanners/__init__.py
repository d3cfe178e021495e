"""Manifest scanners for the supported ecosystems."""

from thanks_stars.scanners.base import (
    BaseScanner,
    ScannerRegistry,
)
from thanks_stars.scanners.cargo import CargoScanner
from thanks_stars.scanners.composer import ComposerScanner
from thanks_stars.scanners.dart import DartScanner
from thanks_stars.scanners.deno import DenoScanner
from thanks_stars.scanners.detector import (
    ManifestScanner,
    detect_ecosystems,
    register_default_scanners,
)
from thanks_stars.scanners.go import GoScanner
from thanks_stars.scanners.gradle import GradleScanner
from thanks_stars.scanners.jsr import JsrScanner
from thanks_stars.scanners.npm import NpmScanner
from thanks_stars.scanners.pip import PipScanner
from thanks_stars.scanners.renv import RenvScanner
from thanks_stars.scanners.ruby import RubyScanner

__all__ = [
    "BaseScanner",
    "CargoScanner",
    "ComposerScanner",
    "DartScanner",
    "DenoScanner",
    "GoScanner",
    "GradleScanner",
    "JsrScanner",
    "ManifestScanner",
    "NpmScanner",
    "PipScanner",
    "RenvScanner",
    "RubyScanner",
    "ScannerRegistry",
    "detect_ecosystems",
    "register_default_scanners",
]

register_default_scanners()
