"""
Export functionality for SkillSwap - write ranked matches as CSV or JSON.
"""

import csv
import json
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console

from .config import get_config_manager
from .models import MatchResult

console = Console()

CSV_FIELDS = [
    'rank', 'subject_id', 'candidate_id', 'candidate_name',
    'total', 'offer_to_want', 'want_to_offer', 'location', 'language', 'trust',
    'boost_rule', 'candidate_offers', 'candidate_wants', 'matched_at'
]


class ExportManager:
    """Handles match result export in multiple formats."""

    SUPPORTED_FORMATS = ('csv', 'json')

    def __init__(self, output_directory: str = ".", score_precision: int = 3):
        self.output_directory = Path(output_directory)
        self.score_precision = score_precision

    def export_match_results(self,
                             results: List[MatchResult],
                             format: str,
                             output_path: Optional[str] = None) -> str:
        """
        Export match results in specified format.

        Args:
            results: Ranked results, best first
            format: Export format ('csv', 'json')
            output_path: Custom output file path

        Returns:
            Path to generated file, or "" when there was nothing to export
        """
        if format not in self.SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported export format: {format}")

        if not results:
            console.print("[yellow]No match results found to export[/yellow]")
            return ""

        if not output_path:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            subject_id = results[0].subject.id
            output_path = str(self.output_directory / f"skillswap_matches_{subject_id}_{timestamp}.{format}")

        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)

        rows = self._result_rows(results)
        if format == 'csv':
            return self._export_matches_csv(rows, str(output_file))
        return self._export_matches_json(rows, results[0].subject.id, str(output_file))

    def _result_rows(self, results: List[MatchResult]) -> List[Dict]:
        rows = []
        for rank, result in enumerate(results, start=1):
            score = result.score.to_dict(self.score_precision)
            rows.append({
                'rank': rank,
                'subject_id': result.subject.id,
                'candidate_id': result.candidate.id,
                'candidate_name': result.candidate.display_name,
                'total': score['total'],
                'offer_to_want': score['offer_to_want'],
                'want_to_offer': score['want_to_offer'],
                'location': score['location'],
                'language': score['language'],
                'trust': score['trust'],
                'boost_rule': score['boost_rule'],
                'weights': score['weights'],
                'candidate_offers': [s.name for s in result.candidate.offers],
                'candidate_wants': [s.name for s in result.candidate.wants],
                'matched_at': result.timestamp.isoformat()
            })
        return rows

    def _export_matches_csv(self, rows: List[Dict], output_path: str) -> str:
        """Export match results to CSV."""
        with open(output_path, 'w', newline='', encoding='utf-8') as csvfile:
            writer = csv.DictWriter(csvfile, fieldnames=CSV_FIELDS, extrasaction='ignore')
            writer.writeheader()

            for row in rows:
                row = dict(row)
                row['candidate_offers'] = "; ".join(row['candidate_offers'])
                row['candidate_wants'] = "; ".join(row['candidate_wants'])
                row['boost_rule'] = row['boost_rule'] or ""
                writer.writerow(row)

        console.print(f"[green]Exported {len(rows)} match results to {output_path}[/green]")
        return output_path

    def _export_matches_json(self, rows: List[Dict], subject_id: str, output_path: str) -> str:
        """Export match results to JSON."""
        export_data = {
            'generated_at': datetime.now().isoformat(),
            'subject_id': subject_id,
            'total_matches': len(rows),
            'matches': rows
        }

        with open(output_path, 'w', encoding='utf-8') as jsonfile:
            json.dump(export_data, jsonfile, indent=2, ensure_ascii=False)

        console.print(f"[green]Exported {len(rows)} match results to {output_path}[/green]")
        return output_path


def get_export_manager() -> ExportManager:
    """Get an export manager configured from settings."""
    config = get_config_manager()
    return ExportManager(
        output_directory=config.get('export', 'output_directory'),
        score_precision=config.get('export', 'score_precision')
    )
