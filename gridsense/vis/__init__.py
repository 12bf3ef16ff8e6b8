from .draw import draw_boxes, draw_report, put_label

__all__ = ["draw_boxes", "draw_report", "put_label"]
