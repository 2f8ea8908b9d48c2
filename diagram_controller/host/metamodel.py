"""
Metamodel tables for the model graph.

Pure data describing how element types behave when the factory builds them:
- Which types have a renderable view (view type = type + "View")
- Which surface types build a different model type
- Which diagrams carry a frame view
- Which containers the factory creates on its own, and may clean up later
- Which relation types carry two structured ends
"""

from typing import Optional


# Types that exist only in the model; the factory cannot place them on a diagram.
VIEWLESS_TYPES = frozenset({
    "Project",
    "Tag",
    "C4Element",
    "UMLAttribute",
    "UMLOperation",
    "UMLReception",
    "UMLTemplateParameter",
    "UMLEnumerationLiteral",
    "UMLRegion",
    "UMLParameter",
    "ERDColumn",
    "ERDDataModel",
    "MMNodeContent",
})

# Types that can only be created as a view anchored to a parent's view.
VIEW_ANCHORED_TYPES = frozenset({
    "UMLInputPin",
    "UMLOutputPin",
    "SysMLFlowProperty",
    "SysMLOperation",
})

# Factory types whose built model carries a different type tag.
MODEL_TYPE_OF = {
    "UMLTimingState": "UMLConstraint",
    "SysMLReference": "SysMLProperty",
    "SysMLPart": "SysMLProperty",
    "SysMLValue": "SysMLProperty",
    "UMLTimeSegment": "UMLTimeSegment",
    "UMLInteractionUseInOverview": "UMLAction",
    "UMLInteractionInOverview": "UMLAction",
}

# Diagram type -> type of the frame view the factory adds on creation.
FRAME_VIEW_TYPES = {
    "UMLTimingDiagram": "UMLTimingFrameView",
    "UMLCommunicationDiagram": "UMLFrameView",
    "UMLInteractionOverviewDiagram": "UMLFrameView",
    "SysMLParametricDiagram": "UMLFrameView",
}

DEFAULT_FRAME_GEOMETRY = (0, 0, 400, 400)

# Diagram type -> chain of containers the factory interposes under the parent.
DIAGRAM_CONTAINERS = {
    "UMLClassDiagram": ("UMLModel",),
    "UMLPackageDiagram": ("UMLModel",),
    "UMLUseCaseDiagram": ("UMLModel",),
    "UMLObjectDiagram": ("UMLModel",),
    "UMLComponentDiagram": ("UMLModel",),
    "UMLCompositeStructureDiagram": ("UMLModel",),
    "UMLDeploymentDiagram": ("UMLModel",),
    "UMLProfileDiagram": ("UMLModel",),
    "UMLInformationFlowDiagram": ("UMLModel",),
    "UMLStatechartDiagram": ("UMLStateMachine",),
    "UMLActivityDiagram": ("UMLActivity",),
    "UMLInteractionOverviewDiagram": ("UMLActivity",),
    "UMLTimingDiagram": ("UMLCollaboration", "UMLInteraction"),
    "UMLCommunicationDiagram": ("UMLCollaboration", "UMLInteraction"),
    "FCFlowchartDiagram": ("FCFlowchart",),
    "DFDDiagram": ("DFDDataFlowModel",),
    "BPMNDiagram": ("BPMNCollaboration",),
    "C4Diagram": ("C4Model",),
    "SysMLRequirementDiagram": ("SysMLRequirement",),
    "SysMLBlockDefinitionDiagram": ("UMLModel",),
    "SysMLInternalBlockDiagram": ("SysMLBlock",),
    "SysMLParametricDiagram": ("SysMLBlock",),
    "WFWireframeDiagram": ("WFWireframe",),
    "MMMindmapDiagram": ("MMMindmap",),
    "AWSDiagram": ("AWSModel",),
    "AzureDiagram": ("AzureModel",),
    "GCPDiagram": ("GCPModel",),
    "ERDDiagram": ("ERDDataModel",),
}

# Containers the factory may create implicitly; eligible for cleanup once empty.
AUTO_CONTAINER_TYPES = frozenset({
    "UMLModel", "UMLStateMachine", "UMLActivity",
    "UMLInteraction", "UMLCollaboration",
    "FCFlowchart", "DFDDataFlowModel",
    "BPMNProcess", "BPMNCollaboration",
    "C4Model",
    "SysMLRequirement", "SysMLBlock",
    "WFWireframe",
    "MMMindmap",
    "AWSModel",
    "AzureModel",
    "GCPModel",
})

# Relation types whose model carries end1/end2 instead of source/target.
ENDED_RELATION_TYPES = {
    "UMLAssociation": "UMLAssociationEnd",
    "ERDRelationship": "ERDRelationshipEnd",
    "UMLLink": "UMLLinkEnd",
    "UMLConnector": "UMLConnectorEnd",
    "SysMLConnector": "UMLConnectorEnd",
}

# (diagram type, element type) -> view type, where a diagram draws a type its own way.
VIEW_TYPE_OVERRIDES = {
    ("UMLTimingDiagram", "UMLLifeline"): "UMLTimingLifelineView",
    ("UMLCommunicationDiagram", "UMLLifeline"): "UMLCommLifelineView",
}

# Diagrams on which a new UMLAction wraps an inline interaction:
# UMLAction.target -> UMLSequenceDiagram, owned by a UMLInteraction under the action.
INLINE_INTERACTION_DIAGRAMS = frozenset({"UMLInteractionOverviewDiagram"})


def view_type_of(type_tag: str, diagram_type: Optional[str] = None) -> Optional[str]:
    """Return the view type registered for a model type, or None."""
    if type_tag in VIEWLESS_TYPES:
        return None
    return VIEW_TYPE_OVERRIDES.get((diagram_type, type_tag), f"{type_tag}View")


def model_type_of(factory_type: str) -> str:
    return MODEL_TYPE_OF.get(factory_type, factory_type)


def frame_view_type_of(diagram_type: str) -> Optional[str]:
    return FRAME_VIEW_TYPES.get(diagram_type)


def containers_for(diagram_type: str) -> tuple[str, ...]:
    return DIAGRAM_CONTAINERS.get(diagram_type, ())


def is_auto_container(type_tag: str) -> bool:
    return type_tag in AUTO_CONTAINER_TYPES
