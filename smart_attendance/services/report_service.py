"""Attendance history statistics."""
from datetime import date, timedelta
from typing import Dict, List, Sequence

from smart_attendance.services.attendance_service import AttendanceSnapshot, AttendanceStatus

class ReportService:
    """Summaries over a student's attendance records."""

    WEEK_DAYS = 7

    @staticmethod
    def summarize(records: Sequence[AttendanceSnapshot]) -> Dict:
        """Counts per status and the share of present days."""
        total = len(records)
        counts = {status: 0 for status in AttendanceStatus}
        for record in records:
            counts[record.status] += 1

        present = counts[AttendanceStatus.PRESENT]
        return {
            'total': total,
            'present': present,
            'late': counts[AttendanceStatus.LATE],
            'absent': counts[AttendanceStatus.ABSENT],
            'present_percentage': round(present / total * 100, 2) if total else 0.0
        }

    @classmethod
    def weekly(cls, records: Sequence[AttendanceSnapshot], today: date) -> List[Dict]:
        """One entry per day over the last week, oldest first."""
        start = today - timedelta(days=cls.WEEK_DAYS - 1)
        by_day: Dict[date, List[AttendanceSnapshot]] = {}
        for record in records:
            if start <= record.day <= today:
                by_day.setdefault(record.day, []).append(record)

        days = []
        for offset in range(cls.WEEK_DAYS):
            day = start + timedelta(days=offset)
            entries = by_day.get(day, [])
            days.append({
                'date': day.isoformat(),
                'classes': [
                    {'class_id': r.class_id, 'status': r.status.value}
                    for r in sorted(entries, key=lambda r: r.class_id)
                ],
                **cls.summarize(entries)
            })
        return days

    @staticmethod
    def class_analytics(records: Sequence[AttendanceSnapshot]) -> Dict:
        """Per-student and per-day status counts for one class."""
        students: Dict[str, Dict] = {}
        daily: Dict[date, Dict] = {}

        for record in records:
            student = students.setdefault(record.student_id, {
                'student_id': record.student_id,
                'present': 0, 'late': 0, 'absent': 0, 'total': 0
            })
            student[record.status.value] += 1
            student['total'] += 1

            day = daily.setdefault(record.day, {
                'date': record.day.isoformat(),
                'present': 0, 'late': 0, 'absent': 0
            })
            day[record.status.value] += 1

        return {
            'students': [students[k] for k in sorted(students)],
            'daily': [daily[k] for k in sorted(daily)],
            'summary': ReportService.summarize(records)
        }
