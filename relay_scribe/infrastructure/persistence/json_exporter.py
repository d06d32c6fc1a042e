#!/usr/bin/env python3
"""
Relay Scribe - JSON Exporter
インフラ層：セッションデータのJSON永続化
"""

import json
from datetime import datetime
from pathlib import Path

from relay_scribe.domain import Session, SessionStats, TranscriptSegment


class SessionJsonExporter:
    """
    終了したセッションをJSON形式で保存

    責務:
    - セッション・セグメント・翻訳のシリアライズ
    - ファイルシステムへの保存
    """

    @staticmethod
    def save_to_file(
        session: Session,
        segments: list[TranscriptSegment],
        translations: dict[str, dict[str, str]],
        stats: SessionStats | None = None,
        output_dir: Path = Path("."),
    ) -> Path:
        """
        トランスクリプトと翻訳をJSONファイルに保存

        Args:
            session: 保存するセッション
            segments: 受理済みセグメント（追加順）
            translations: セグメントID → {言語コード: 翻訳文}
            stats: 終了時の統計
            output_dir: 出力先ディレクトリ

        Returns:
            Path: 保存されたファイルのパス
        """
        # ファイル名: session_<ID>_YYYYMMDD_HHMMSS.json
        timestamp = session.started_at.strftime("%Y%m%d_%H%M%S")
        output_dir.mkdir(parents=True, exist_ok=True)
        output_path = output_dir / f"session_{session.id}_{timestamp}.json"

        segments_dict = []
        for seg in segments:
            segment_data: dict[str, object] = {
                "id": seg.id,
                "text": seg.text,
                "created_at": seg.created_at.isoformat(),
                "source_language": seg.source_language,
                "translations": translations.get(seg.id, {}),
            }
            # 文法補正（存在する場合のみ追加）
            if seg.corrected_text is not None:
                segment_data["corrected_text"] = seg.corrected_text
            segments_dict.append(segment_data)

        output_data: dict[str, object] = {
            "session_id": session.id,
            "primary_language": session.primary_language,
            "target_languages": list(session.target_languages),
            "session_start": session.started_at.isoformat(),
            "session_end": (session.ended_at or datetime.now()).isoformat(),
            "total_segments": len(segments),
            "segments": segments_dict,
        }

        if stats is not None:
            output_data["stats"] = {
                "segment_count": stats.segment_count,
                "hash_set_size": stats.hash_set_size,
                "transcript_length": stats.transcript_length,
            }

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(output_data, f, ensure_ascii=False, indent=2)

        return output_path
