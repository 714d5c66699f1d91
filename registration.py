"""Exam registration fee calculation."""


def price(student_count: int, paper_count: int, fee_per_paper: int) -> int:
    """Total fee for registering every selected student for every selected paper."""
    if student_count < 0 or paper_count < 0:
        raise ValueError("Counts cannot be negative")
    if student_count == 0 or paper_count == 0:
        return 0
    return student_count * paper_count * fee_per_paper


def _count(selection) -> int:
    """A selection is either a count or a list of selected items."""
    if isinstance(selection, bool):
        raise ValueError("Selection must be a count or a list")
    if isinstance(selection, int):
        return selection
    if isinstance(selection, (list, tuple)):
        return len(selection)
    if isinstance(selection, dict):
        # {key: selected} maps, as kept by a checkbox list
        return sum(1 for selected in selection.values() if selected)
    raise ValueError("Selection must be a count or a list")


def price_selection(students, papers, fee_per_paper: int) -> int:
    return price(_count(students), _count(papers), fee_per_paper)


def per_student_fee(papers, fee_per_paper: int) -> int:
    """Fee printed on one student's registration form."""
    return price(1, _count(papers), fee_per_paper)
