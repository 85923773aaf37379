"""Solidity source renderers for the selector contract and its proxy template.

Both renderers are pure: identical inputs give byte-identical text.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from pixel_selectors.mining.models import FunctionRecord
from pixel_selectors.remap import RemapEntry
from pixel_selectors.selectors import PixelGrid

DEFAULT_AUTHORIZED_ADDRESS = "0x00000063266aAAeDD489e4956153855626E44061"

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

_SELECTOR_CONTRACT_TEMPLATE = """\
// SPDX-License-Identifier: MIT
pragma solidity >=0.8.30;

contract {contract_name} {{
{function_code}

    /* execute through proxy (if set) or return the original selector */
    function _e(bytes4 signature) internal view returns (bytes4) {{
        address push4Core = {authorized_address};

        bytes memory proxySelector = abi.encodeWithSignature("proxy()");
        bytes memory executeSelector = abi.encodeWithSignature("execute(bytes4)", signature);

        (bool success, bytes memory result) = push4Core.staticcall(proxySelector);
        if (!success) {{
            return signature;
        }}
        address proxy = abi.decode(result, (address));
        if (proxy == address(0)) {{
            return signature;
        }}

        (bool success2, bytes memory result2) = proxy.staticcall(executeSelector);
        if (!success2) {{
            bytes memory h = "0123456789abcdef";
            bytes memory r = new bytes(10);
            r[0] = "0";
            r[1] = "x";
            for (uint256 i = 0; i < 4; i++) {{
                r[2 + i * 2] = h[uint8(signature[i]) >> 4];
                r[3 + i * 2] = h[uint8(signature[i]) & 0xf];
            }}
            revert(string(abi.encodePacked("Failed to call execute for selector: ", string(r))));
        }}
        bytes4 returnValue = abi.decode(result2, (bytes4));

        return returnValue;
    }}
}}
"""

_PROXY_HEADER_TEMPLATE = """\
// SPDX-License-Identifier: MIT
pragma solidity >=0.8.30;

import {{ PUSH4 }} from "./PUSH4.sol";
import {{ PUSH4Core }} from "./PUSH4Core.sol";

/**
 * @title {contract_name}
 * @author Generated by pixel-selectors
 * @notice Renders a pixel art image ({width}x{height} grid)
 */
contract {contract_name} {{
    PUSH4 public push4;
    PUSH4Core public push4core;

    constructor(address _push4, address _push4core) {{
        push4 = PUSH4(_push4);
        push4core = PUSH4Core(_push4core);
    }}

    function execute(bytes4 selector) external pure returns (bytes4) {{
        uint8 r = uint8(selector[0]);
        uint8 g = uint8(selector[1]);
        uint8 b = uint8(selector[2]);
        uint8 col = uint8(selector[3]);

        // Get the render row (y position the renderer will assign)
        uint8 renderRow = getRenderRow(r, g, b, col);

        // Get pixel color at (col, renderRow)
        (uint8 pr, uint8 pg, uint8 pb) = getPixel(col, renderRow);

        return bytes4(bytes.concat(bytes1(pr), bytes1(pg), bytes1(pb), bytes1(col)));
    }}

    function getRenderRow(uint8 r, uint8 g, uint8 b, uint8 col) internal pure returns (uint8) {{
        uint24 key = (uint24(r) << 16) | (uint24(g) << 8) | uint24(b);

"""

_PROXY_PIXEL_HEADER = """\
        return 0;
    }

    function getPixel(uint8 col, uint8 row) internal pure returns (uint8 r, uint8 g, uint8 b) {
        bytes memory data;

"""

_PROXY_FOOTER = """\

        uint256 offset = uint256(row) * 3;
        r = uint8(data[offset]);
        g = uint8(data[offset + 1]);
        b = uint8(data[offset + 2]);
    }
}
"""


def validate_address(address: str) -> str:
    if not _ADDRESS_RE.match(address):
        raise ValueError(f"Invalid authorized address: {address!r}")
    return address


def render_selector_contract(
    records: Sequence[FunctionRecord],
    *,
    authorized_address: str = DEFAULT_AUTHORIZED_ADDRESS,
    contract_name: str = "PUSH4",
) -> str:
    """One zero-argument external function per record, delegating to `_e`."""

    validate_address(authorized_address)
    function_code = "\n\n".join(
        f"    /* 0x{record.selector} */\n"
        f"    function {record.func_name}() external view returns (bytes4) {{\n"
        "        return _e(msg.sig);\n"
        "    }"
        for record in sorted(records, key=lambda item: item.index)
    )
    return _SELECTOR_CONTRACT_TEMPLATE.format(
        contract_name=contract_name,
        function_code=function_code,
        authorized_address=authorized_address,
    )


def render_proxy_contract(
    grid: PixelGrid,
    remap: dict[int, list[RemapEntry]],
    *,
    contract_name: str = "PUSH4ProxyTemplate",
) -> str:
    """Render-row lookup per column plus true colours packed column by column."""

    if grid.height > 256:
        raise ValueError("render rows are uint8; image height must be <= 256")
    for column, entries in remap.items():
        if column >= grid.width:
            raise ValueError(f"Selector table column {column} is outside image width {grid.width}")
        if entries and entries[-1].render_row >= grid.height:
            raise ValueError(
                f"Column {column} ranks {len(entries)} selectors but the image has "
                f"{grid.height} rows",
            )

    parts = [
        _PROXY_HEADER_TEMPLATE.format(
            contract_name=contract_name,
            width=grid.width,
            height=grid.height,
        ),
    ]
    for column in range(grid.width):
        parts.append(f"        if (col == {column}) {{\n")
        for entry in remap.get(column, []):
            parts.append(
                f"            if (key == 0x{entry.color_key:06x}) return {entry.render_row};\n",
            )
        parts.append("        }\n")

    parts.append(_PROXY_PIXEL_HEADER)
    for column in range(grid.width):
        packed = "".join(
            "{:02x}{:02x}{:02x}".format(*grid.rgb_at(column, row)) for row in range(grid.height)
        )
        parts.append(f'        if (col == {column}) data = hex"{packed}";\n')
    parts.append(_PROXY_FOOTER)
    return "".join(parts)
