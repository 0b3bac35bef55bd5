from __future__ import annotations

import datetime as dt
import json
from decimal import Decimal
from pathlib import Path

from taintrace.config import settings
from taintrace.core.models import TaintedOutput, TraceResult
from taintrace.io.schemas import trace_result_to_dict
from taintrace.services.reconciler import contact_list, recovery_percent


# rows shown per hop in the flow overview
FLOW_ROWS_PER_HOP = 5


def write_trace_json(result: TraceResult, out_dir: str, filename: str = "trace.json") -> str:
    p = Path(out_dir)
    p.mkdir(parents=True, exist_ok=True)

    out_path = p / filename
    with out_path.open("w", encoding="utf-8") as f:
        json.dump(trace_result_to_dict(result), f, indent=2)

    return str(out_path)


def format_timestamp(ts: int) -> str:
    if not ts:
        return "Unknown"
    return dt.datetime.fromtimestamp(int(ts), tz=dt.timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def write_report_md(result: TraceResult, out_dir: str, filename: str = "report.md") -> str:
    """
    Law-enforcement ready report: what left the victim, where it landed,
    and which exchanges to contact.
    """
    p = Path(out_dir)
    p.mkdir(parents=True, exist_ok=True)

    out_path = p / filename
    sym = result.asset_symbol
    s = result.summary

    def amt(x: Decimal) -> str:
        return f"{x:,.4f}".rstrip("0").rstrip(".")

    def entity_label(o: TaintedOutput) -> str:
        if o.entity is None:
            return "Unknown Wallet"
        tag = " (inferred)" if o.entity.inferred else ""
        return f"[{o.entity.category.value}] {o.entity.name}{tag}"

    lines = []
    lines.append("# Stolen Funds Trace Report\n\n")

    lines.append("## Summary\n\n")
    lines.append(f"- Victim wallet: **{result.source_address}**\n")
    if result.asset.is_native:
        lines.append(f"- Asset stolen: **{sym}** (native)\n")
    else:
        lines.append(f"- Asset stolen: **{sym}** (SPL token, mint `{result.asset.mint}`)\n")
    lines.append(f"- Total stolen: **{amt(result.total_stolen)} {sym}**\n")
    lines.append(f"- Traced amount: **{amt(result.traced_amount)} {sym}**\n")
    lines.append(f"- Flow rows: **{len(result.flow_graph)}** (max {result.max_hops} hop(s))\n")
    if result.truncated:
        lines.append("- _Trace stopped at the flow row cap; deeper flows were not followed._\n")
    if result.timed_out:
        lines.append("- _Trace stopped at the overall timeout; deeper flows were not followed._\n")
    lines.append("\n")

    lines.append("## Recovery Probability\n\n")
    lines.append(f"**{recovery_percent(result):.1f}%** of the stolen amount reached a KYC exchange.\n\n")
    lines.append(f"- Exchange (KYC, recoverable): {amt(s.exchange_amount)} {sym}\n")
    lines.append(f"- Swap venues (converted): {amt(s.swap_amount)} {sym}\n")
    lines.append(f"- Bridges (cross-chain): {amt(s.bridge_amount)} {sym}\n")
    if s.privacy_amount > 0:
        lines.append(f"- Privacy services: {amt(s.privacy_amount)} {sym}\n")
    lines.append(f"- Untraced: {amt(s.untraced_amount)} {sym}\n\n")

    lines.append("## Fund Flow\n\n")
    if not result.flow_graph:
        lines.append("_No outgoing transfers of the traced asset were found._\n\n")
    max_hop = max((o.hop for o in result.flow_graph), default=0)
    for hop in range(1, max_hop + 1):
        at_level = [o for o in result.flow_graph if o.hop == hop]
        if not at_level:
            continue
        lines.append(f"### Hop {hop}\n\n")
        for o in at_level[:FLOW_ROWS_PER_HOP]:
            lines.append(
                f"- {entity_label(o)} `{o.address}` | "
                f"{amt(o.taint_amount)} {sym} ({o.taint_percent:.0f}% tainted)\n"
            )
        if len(at_level) > FLOW_ROWS_PER_HOP:
            lines.append(f"- ... +{len(at_level) - FLOW_ROWS_PER_HOP} more destinations at hop {hop}\n")
        lines.append("\n")

    lines.append("## Detailed Fund Flow\n\n")
    lines.append("Copy addresses and signatures below for police reports.\n\n")
    lines.append("| Hop | To wallet | Amount | Taint | Timestamp | Entity | Transaction |\n")
    lines.append("|---|---|---|---|---|---|---|\n")
    for o in result.flow_graph:
        url = settings.EXPLORER_TX_URL.format(signature=o.signature)
        lines.append(
            f"| {o.hop} | `{o.address}` | {amt(o.amount)} {o.symbol or sym} | "
            f"{o.taint_percent:.1f}% | {format_timestamp(o.timestamp)} | "
            f"{entity_label(o)} | [{o.signature[:12]}...]({url}) |\n"
        )
    lines.append("\n")

    if result.endpoints:
        lines.append("## KYC Endpoints (Contact These Exchanges)\n\n")
        for i, ep in enumerate(result.endpoints, start=1):
            lines.append(f"{i}. **{ep.entity.name}** ({ep.entity.category.value})\n")
            lines.append(f"   - Deposit address: `{ep.address}`\n")
            lines.append(f"   - Amount: {amt(ep.taint_amount)} {ep.symbol or sym}\n")
            lines.append(f"   - Tx signature: `{ep.signature}`\n")
            lines.append(f"   - Timestamp: {format_timestamp(ep.timestamp)}\n")
        lines.append("\n")

    if result.unreachable:
        lines.append("## Unreachable Addresses\n\n")
        lines.append("Transaction data could not be fetched; these branches were not followed.\n\n")
        for addr in result.unreachable:
            lines.append(f"- `{addr}`\n")
        lines.append("\n")

    lines.append("## Recommendations\n\n")
    if s.exchange_amount > 0:
        lines.append("- Funds reached a KYC exchange. Contact the exchange with a police report number, "
                     "the transaction signatures and proof of wallet ownership.\n")
        exchanges = contact_list(result.endpoints)
        if exchanges:
            lines.append(f"- Contact: {', '.join(exchanges)}\n")
    if not result.asset.is_native and s.swap_amount > 0:
        lines.append("- Tokens were swapped via a DEX. Trace the destination wallets again for SOL.\n")
    if s.bridge_amount > 0:
        lines.append("- Funds crossed a bridge. Continue the investigation on the destination chain.\n")
    if s.untraced_amount > result.total_stolen * Decimal("0.5"):
        lines.append("- Most funds are untraced: they may have been mixed or parked in unknown wallets. "
                     "Consider professional forensics services.\n")
    if s.exchange_amount == 0 and s.bridge_amount == 0:
        lines.append("- No KYC endpoints found. Funds remain in self-custody wallets; "
                     "monitor them for future exchange deposits.\n")

    with out_path.open("w", encoding="utf-8") as f:
        f.writelines(lines)

    return str(out_path)
