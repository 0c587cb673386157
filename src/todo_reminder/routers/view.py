from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ..filters import FilterConfig, filter_todos
from ..grouping import Group, GroupingConfig, GroupLevel, GroupNode, GroupSummary, group_todos
from ..models import NO_PROJECT
from ..schemas import GroupItem, ProjectItem, SummaryOut, TodoLeaf, TodoOut, TreeItem, ViewOut
from ..services import Services, get_services

router = APIRouter(
    prefix="/api/v1/view",
    tags=["view"],
)


def _summary(summary: GroupSummary) -> SummaryOut:
    return SummaryOut(
        total=summary.total,
        urgent=summary.urgent,
        overdue=summary.overdue,
        completed=summary.completed,
    )


def _render(group: Group) -> TreeItem:
    if isinstance(group, GroupNode):
        children: List[TreeItem] = [_render(child) for child in group.children]
    else:
        children = [TodoLeaf(todo=TodoOut.from_todo(t)) for t in group.todos]

    if group.level is GroupLevel.PROJECT:
        return ProjectItem(
            project_name=None if group.label == NO_PROJECT else group.label,
            label=group.label,
            summary=_summary(group.summary),
            children=children,
        )
    return GroupItem(label=group.label, level=group.level, summary=_summary(group.summary), children=children)


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=ViewOut,
    summary="Grouped View",
    description=(
        "Filter the todo collection with the saved filter and group it with the saved grouping. "
        "The primary/secondary/tertiary query parameters override the saved grouping for this request."
    ),
)
def get_view(
    primary: Optional[GroupLevel] = Query(None, description="Override the outermost grouping level"),
    secondary: Optional[GroupLevel] = Query(None, description="Override the second grouping level"),
    tertiary: Optional[GroupLevel] = Query(None, description="Override the third grouping level"),
    services: Services = Depends(get_services),
) -> ViewOut:
    grouping = services.load_grouping()
    overrides = {
        name: level
        for name, level in (("primary", primary), ("secondary", secondary), ("tertiary", tertiary))
        if level is not None
    }
    if overrides:
        grouping = GroupingConfig.model_validate({**grouping.model_dump(), **overrides})
    filter_config = services.load_filter()

    now = services.now()
    week_start = services.settings.week_start
    subset = filter_todos(services.store.list(), filter_config, now, week_start)
    forest = group_todos(subset, grouping, now, week_start)
    return ViewOut(
        generated_at=now,
        grouping=grouping,
        filter=filter_config,
        total=len(subset),
        items=[_render(group) for group in forest],
    )


# PUBLIC_INTERFACE
@router.get("/grouping", response_model=GroupingConfig, summary="Get Grouping")
def get_grouping(services: Services = Depends(get_services)) -> GroupingConfig:
    return services.load_grouping()


# PUBLIC_INTERFACE
@router.put("/grouping", response_model=GroupingConfig, summary="Save Grouping")
def put_grouping(payload: GroupingConfig, services: Services = Depends(get_services)) -> GroupingConfig:
    """Persist the grouping used by the view from now on."""
    services.save_grouping(payload)
    return payload


# PUBLIC_INTERFACE
@router.get("/filter", response_model=FilterConfig, summary="Get Filter")
def get_filter(services: Services = Depends(get_services)) -> FilterConfig:
    return services.load_filter()


# PUBLIC_INTERFACE
@router.put("/filter", response_model=FilterConfig, summary="Save Filter")
def put_filter(payload: FilterConfig, services: Services = Depends(get_services)) -> FilterConfig:
    """Persist the filter used by the view from now on."""
    services.save_filter(payload)
    return payload
