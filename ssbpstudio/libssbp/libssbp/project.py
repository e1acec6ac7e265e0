"""libssbp.project

Assembles the documents for one .ssbp, in this order:

  <cellmap>.ssce    one per CellMap, ascending CellMap index
  <pack>.ssae       one per anime pack, file order
  <effect>.ssee     one per effect file, file order
  <name>.sspj       the project, listing exactly the documents above

Each document is handed to the sink as soon as it is rendered.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Tuple

from lxml import etree

from . import xmlout as x
from .anime import anime_pack_to_xml, anime_settings_to_xml
from .cell import CellResolver, TextureResolver, tex_pack_settings_to_xml
from .effect import effect_document_name, effect_to_xml
from .model import SsbpFile, TexFilterMode, TexWrapMode
from .reader import parse_ssbp, read_ssbp

log = logging.getLogger(__name__)

Sink = Callable[[str, bytes], None]

INTERPOLATION_TYPES = ("none", "linear", "hermite", "bezier", "acceleration", "deceleration")

AVAILABLE_ATTRIBUTES = (
    "CELL", "POSX", "POSY", "POSZ", "ROTX", "ROTY", "ROTZ", "SCLX", "SCLY",
    "LSCX", "LSCY", "ALPH", "LALP", "PRIO", "IFLH", "IFLV", "FLPH", "FLPV", "HIDE",
    "PCOL", "VCOL", "VERT", "PVTX", "PVTY", "ANCX", "ANCY", "SIZX", "SIZY", "UVTX",
    "UVTY", "UVRZ", "UVSX", "UVSY", "BNDR", "MASK", "USER", "IPRM", "EFCT",
)

DEFAULT_SET_ATTRIBUTES = ("POSX", "POSY", "ROTZ", "PRIO", "HIDE")


@dataclass
class ConversionResult:
    project_name: str
    cellmap_names: List[str] = field(default_factory=list)
    animepack_names: List[str] = field(default_factory=list)
    effect_names: List[str] = field(default_factory=list)

    @property
    def project_document(self) -> str:
        return f"{self.project_name}.sspj"


class ProjectConverter:
    def __init__(self, ssbp: SsbpFile, name: str, textures: TextureResolver, sink: Sink):
        self.ssbp = ssbp
        self.name = name
        self.textures = textures
        self.sink = sink

    def documents(self) -> Iterator[Tuple[str, bytes]]:
        view = self.ssbp.view
        result = self.result = ConversionResult(self.name)

        cells = CellResolver(view, self.ssbp.cells)
        for cell in cells.cells():
            payload = cell.to_xml(self.textures)
            result.cellmap_names.append(cell.document_name)
            yield cell.document_name, payload

        for pack in self.ssbp.anime_packs:
            doc = f"{pack.name}.ssae"
            payload = anime_pack_to_xml(view, pack, cells, result.cellmap_names)
            result.animepack_names.append(doc)
            yield doc, payload

        for effect in self.ssbp.effects:
            doc = effect_document_name(effect)
            payload = effect_to_xml(view, effect, cells)
            result.effect_names.append(doc)
            yield doc, payload

        yield result.project_document, project_to_xml(
            self.name, result.cellmap_names, result.animepack_names, result.effect_names
        )

    def convert(self) -> ConversionResult:
        for doc, payload in self.documents():
            self.sink(doc, payload)
        log.info(
            "%s: %d cell maps, %d anime packs, %d effects",
            self.name,
            len(self.result.cellmap_names),
            len(self.result.animepack_names),
            len(self.result.effect_names),
        )
        return self.result


def convert_bytes(data: bytes, name: str, textures: TextureResolver, sink: Sink) -> ConversionResult:
    return ProjectConverter(parse_ssbp(data), name, textures, sink).convert()


def convert_file(path: str, textures: TextureResolver, sink: Sink) -> ConversionResult:
    name = os.path.splitext(os.path.basename(path))[0]
    return ProjectConverter(read_ssbp(path), name, textures, sink).convert()


# -----------------------------
# .sspj rendering
# -----------------------------

def project_to_xml(
    name: str,
    cellmap_names: List[str],
    animepack_names: List[str],
    effect_names: List[str],
) -> bytes:
    root = x.new_document("SpriteStudioProject")
    x.text(root, "name", name)
    x.blank(root, "exportPath")
    _settings_to_xml(etree.SubElement(root, "settings"))
    anime_settings_to_xml(etree.SubElement(root, "animeSettings"))
    tex_pack_settings_to_xml(root)
    x.name_list(root, "cellmapNames", cellmap_names)
    x.name_list(root, "animepackNames", animepack_names)
    x.name_list(root, "effectFileNames", effect_names)
    for tag in ("lastAnimeFile", "lastAnimeName", "lastPart", "lastCellMapFile", "lastCell", "lastEffectMode"):
        x.blank(root, tag)
    x.text(root, "setupmode", 0)
    x.empty(root, "expandAnimation")
    x.empty(root, "expandSequence")
    return x.serialize(root)


def _settings_to_xml(el: etree._Element) -> None:
    for tag in ("animeBaseDirectory", "cellMapBaseDirectory", "imageBaseDirectory", "effectBaseDirectory"):
        x.blank(el, tag)
    x.text(el, "exportBaseDirectory", "Export")
    x.text(el, "queryExportBaseDirectory", 1)
    x.text(el, "copyWhenImportImageIsOutside", 1)
    x.text(el, "exportAnimeFileFormat", "SSAX")
    x.text(el, "exportCellMapFileFormat", "invalid")
    x.text(el, "exportCellMap", 0)
    x.text(el, "copyImageWhenExportCellmap", 1)
    x.blank(el, "ssConverterOptions")
    x.text(el, "player", "any")
    x.blank(el, "signal")
    x.text(el, "strictVer4", 0)
    x.text(el, "dontUseMatrixForTransform", 0)
    x.text(el, "rootPartFunctionAsVer4", 0)
    x.text(el, "interpolateColorBlendAsVer4", 1)
    x.text(el, "interpolateVertexOffsetAsVer4", 1)
    x.text(el, "restrictXYAsInteger", 0)
    x.text(el, "inheritRatesNoKeySave", 1)
    x.text_list(el, "availableInterpolationTypes", "item", INTERPOLATION_TYPES)
    x.text_list(el, "availableAttributes", "item", AVAILABLE_ATTRIBUTES)
    x.text_list(el, "availableFeatures", "value", ("bone", "effect", "mask", "mesh"))
    x.text_list(el, "defaultSetAttributes", "item", DEFAULT_SET_ATTRIBUTES)
    x.text(el, "wrapMode", TexWrapMode.CLAMP.label)
    x.text(el, "filterMode", TexFilterMode.LINEAR.label)
    x.text(el, "interpolateMode", "linear")
    x.text(el, "coordUnit", "rate")
    _render_settings_to_xml(etree.SubElement(el, "renderingSettings"))
    effect = etree.SubElement(el, "effectSettings")
    x.text(effect, "gridSize", 50)
    x.empty(el, "cellTags")
    x.text(el, "useDecimalDigit", 2)
    x.text(el, "opacifyOutsideCanvasFrame", 1)
    x.text(el, "convertImageToPMA", 0)
    x.text(el, "blendImageAsPMA", 0)
    x.text(el, "unpremultiplyAlpha", 0)
    x.text(el, "vertexAnimeFloat", 0)
    x.text(el, "allowNPOT", 0)
    x.text(el, "maxLoadableImageWidth", 8192)
    x.text(el, "maxLoadableImageHeight", 8192)
    x.text(el, "maxLoadableImageFileSize", 73400320)
    x.text(el, "instanceStackMax", 100)
    x.text(el, "selectedAttrSelPreset", 0)
    for letter in "ABCDEFGHIJ":
        x.blank(el, f"attrSelPresetName{letter}")
        x.empty(el, f"attrSelPreset{letter}")


def _render_settings_to_xml(el: etree._Element) -> None:
    x.blank(el, "outputFolder")
    x.text(el, "outputType", "AVI")
    x.text(el, "bgColor", "FF606060")
    x.text(el, "addAnimeName", 0)
    x.text(el, "addTimeStamp", 0)
    x.text(el, "addAlphaChannel", 1)
    x.text(el, "imageSizeRatioW", 100)
    x.text(el, "imageSizeRatioH", 100)
    x.text(el, "imageSizeRatioFix", 1)
    x.text(el, "imageSizeIsPixcel", 1)
    for i in range(4):
        x.text(el, f"imageSizeExpansion{i}", 0)
    webp = etree.SubElement(el, "webpSettings")
    x.text(webp, "lossyType", "lossless")
    x.text(webp, "qualityFactor", 75)
    x.text(webp, "compMethod", 4)
    x.text(webp, "useLosslessPreset", 1)
    x.text(webp, "losslessPreset", 0)
